from pydantic import BaseModel
from typing import Optional


class PaginationMeta(BaseModel):
    """페이지네이션 메타 정보"""
    limit: int
    offset: int
    total_count: Optional[int] = None
    has_next: Optional[bool] = None


# 엔드포인트별 페이지네이션 제한
class PaginationLimits:
    TRANSACTION_HISTORY = {"min": 1, "max": 100, "default": 50}
    CONVERSION_HISTORY = {"min": 1, "max": 100, "default": 20}
    AUDIT_TRANSACTIONS = {"min": 1, "max": 500, "default": 100}
