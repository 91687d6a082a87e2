"""
토큰 거래 원장 모델

모든 감사 이벤트(무료 감사, 유료 토큰 전송, 토큰 구매, 포인트 전환)는
이 테이블에 한 행으로 기록됩니다.

원칙:
1. 추가 전용(Append-only): 일반 트래픽은 INSERT만 수행
2. 감사 가능성: 금액/포인트 필드는 정합성 보정 배치만 수정하며,
   수정 내역은 ledger_corrections 테이블에 남음
3. 멱등성: external_reference(결제 참조)는 유니크
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from thanksapi.models.base import BaseModel, generate_id


class TransactionType(str, Enum):
    """거래 유형"""

    THANK_YOU = "thank_you"  # 무료 감사
    TOA_TOKEN = "toa_token"  # 유료 토큰 전송
    TOKEN_PURCHASE = "token_purchase"  # 결제로 토큰 구매
    POINTS_CONVERSION = "points_conversion"  # 포인트 -> 토큰 전환


class TokenTransaction(BaseModel):
    __tablename__ = "token_transactions"
    __table_args__ = (
        UniqueConstraint("external_reference", name="uq_token_transactions_external_reference"),
        Index("idx_token_transactions_from_user", "from_user_id", "timestamp"),
        Index("idx_token_transactions_to_technician", "to_technician_id", "timestamp"),
        Index("idx_token_transactions_pair_day", "from_user_id", "to_technician_id", "activity_date"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)

    from_user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    # 구매/전환은 수신자가 없으므로 빈 문자열
    to_technician_id: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    from_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    to_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_random_message: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # 일일 제한 계산에 쓰는 달력 날짜 (설정된 TIMEZONE 기준)
    activity_date: Mapped[date] = mapped_column(Date, nullable=False)

    dollar_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)
    technician_payout: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)
    platform_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)

    # 수신자 적립 포인트 / 발신자 적립 포인트
    points_awarded: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sender_points_awarded: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    external_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
