from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from thanksapi.schemas.pagination import PaginationMeta


class PointsIssueSummary(BaseModel):
    """포인트 필드 이상 건수"""

    missing: int = 0
    zero: int = 0
    inconsistent: int = 0


class RevenueSummary(BaseModel):
    """유료 전송 매출 합계"""

    total_dollar_value: Decimal = Decimal("0")
    total_technician_payout: Decimal = Decimal("0")
    total_platform_fee: Decimal = Decimal("0")


class LedgerAnalysis(BaseModel):
    """원장 분석 결과 (읽기 전용)"""

    status: str = Field(..., description="OK | MISMATCH")
    total_transactions: int
    by_type: Dict[str, int]
    points_issues: PointsIssueSummary
    monetary_issues: int = Field(..., description="금액 필드가 없거나 공식과 다른 유료 전송 수")
    revenue: RevenueSummary
    analyzed_at: datetime


class CorrectionEntry(BaseModel):
    """보정 기록"""

    id: Optional[str] = None
    run_id: str
    entity_type: str
    entity_id: str
    field: str
    old_value: Optional[str] = None
    new_value: str
    reason: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReconciliationReport(BaseModel):
    """정합성 보정 실행 결과"""

    run_id: str
    dry_run: bool
    scanned: int = 0
    mismatched: int = 0
    corrected: int = 0
    skipped_concurrent: int = 0
    corrections: List[CorrectionEntry] = Field(default_factory=list)


class ReconcileRequest(BaseModel):
    dry_run: bool = Field(True, description="True면 보정 없이 불일치만 보고")
    include_accounts: bool = Field(True, description="프로필 포인트 재계산 포함 여부")


class ReconcileResponse(BaseModel):
    transactions: ReconciliationReport
    accounts: Optional[ReconciliationReport] = None
    technician_totals: Optional[ReconciliationReport] = None


class TransactionFilter(BaseModel):
    """관리자 원장 조회 필터 (모두 선택)"""

    type: Optional[str] = Field(None, description="thank_you | toa_token | token_purchase | points_conversion")
    user_id: Optional[str] = Field(None, description="발신자 ID")
    technician_id: Optional[str] = Field(None, description="수신 기술자 ID")
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_tokens: Optional[int] = None
    max_tokens: Optional[int] = None
    has_issues: Optional[bool] = None


class AuditedTransaction(BaseModel):
    """이상 항목이 붙은 원장 거래"""

    id: str
    type: str
    from_user_id: str
    to_technician_id: str
    from_name: str
    to_name: str
    tokens: int
    message: str
    timestamp: datetime
    activity_date: date
    dollar_value: Optional[Decimal] = None
    technician_payout: Optional[Decimal] = None
    platform_fee: Optional[Decimal] = None
    points_awarded: Optional[int] = None
    sender_points_awarded: Optional[int] = None
    has_issues: bool = False
    issues: List[str] = Field(default_factory=list)


class AuditedTransactionPage(BaseModel):
    transactions: List[AuditedTransaction]
    meta: PaginationMeta
