from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from thanksapi.schemas.pagination import PaginationMeta


class ThankYouRequest(BaseModel):
    """무료 감사 요청"""

    recipient_id: str = Field(..., min_length=1, description="기술자 ID 또는 인증 ID")


class SendTokensRequest(BaseModel):
    """유료 토큰 전송 요청"""

    recipient_id: str = Field(..., min_length=1, description="기술자 ID 또는 인증 ID")
    token_count: int = Field(..., gt=0, description="전송할 토큰 수")


class TransactionEntry(BaseModel):
    """원장 거래 항목"""

    id: str = Field(..., description="거래 ID")
    from_user_id: str
    to_technician_id: str
    from_name: str
    to_name: str
    tokens: int
    message: str
    type: str = Field(..., description="thank_you | toa_token | token_purchase | points_conversion")
    timestamp: datetime
    activity_date: date
    dollar_value: Optional[Decimal] = None
    technician_payout: Optional[Decimal] = None
    platform_fee: Optional[Decimal] = None
    points_awarded: Optional[int] = None
    sender_points_awarded: Optional[int] = None
    external_reference: Optional[str] = None

    class Config:
        from_attributes = True


class AppreciationResult(BaseModel):
    """감사/전송 처리 결과"""

    success: bool = Field(..., description="성공 여부")
    transaction_id: str = Field(..., description="생성된 거래 ID")
    type: str = Field(..., description="거래 유형")
    tokens: int = Field(0, description="전송 토큰 수")
    points_awarded: int = Field(..., description="수신자 적립 포인트")
    sender_points_awarded: int = Field(0, description="발신자 적립 포인트")
    dollar_value: Optional[Decimal] = None
    technician_payout: Optional[Decimal] = None
    platform_fee: Optional[Decimal] = None
    message: str = Field(..., description="감사 메시지")
    sender_balance: Optional[int] = Field(None, description="전송 후 발신자 토큰 잔액")


class RateLimitStatus(BaseModel):
    """무료 감사 일일 제한 상태"""

    sender_id: str
    recipient_id: str
    limit_date: date
    can_send_free: bool = Field(..., description="지금 무료 감사를 보낼 수 있는지")
    already_thanked: bool = Field(..., description="오늘 이 기술자에게 이미 감사했는지")
    thanked_today_count: int = Field(..., description="오늘 감사한 서로 다른 기술자 수")
    remaining_today: int = Field(..., description="오늘 남은 무료 감사 수")
    free_thank_yous_to_recipient: int = Field(0, description="오늘 이 기술자에게 기록된 무료 감사 거래 수")


class TransactionHistoryResponse(BaseModel):
    """보낸/받은 거래 내역"""

    entries: List[TransactionEntry]
    meta: PaginationMeta
