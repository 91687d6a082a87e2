from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class TokenBalanceResponse(BaseModel):
    """토큰 잔액"""

    user_id: str = Field(..., description="사용자 ID")
    tokens: int = Field(..., description="사용 가능한 토큰")
    total_purchased: int = Field(..., description="누적 획득 토큰 (구매 + 전환)")
    total_spent: int = Field(..., description="누적 전송 토큰")
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenPackResponse(BaseModel):
    """토큰 팩 정보"""

    id: str
    tokens: int
    price_cents: int
    price: Decimal
    label: str
    popular: bool = False
    price_per_token: Decimal


class TokenPackListResponse(BaseModel):
    packs: List[TokenPackResponse]


class PurchaseRequest(BaseModel):
    """결제 완료 웹훅 페이로드"""

    user_id: str = Field(..., min_length=1, description="잔액을 받을 사용자 ID")
    token_count: int = Field(..., gt=0, description="지급할 토큰 수")
    purchase_amount: Decimal = Field(..., ge=0, description="결제 금액 (달러)")
    external_reference: str = Field(..., min_length=1, max_length=255, description="결제 참조 ID (멱등성 키)")
    pack_id: Optional[str] = Field(None, description="구매한 토큰 팩 ID")


class PurchaseResult(BaseModel):
    """구매 반영 결과"""

    success: bool = True
    applied: bool = Field(..., description="이번 호출로 잔액이 증가했는지")
    duplicate: bool = Field(False, description="이미 처리된 결제 참조인지")
    transaction_id: Optional[str] = None
    tokens: int
    new_token_balance: int
    message: str
