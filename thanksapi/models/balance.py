from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from thanksapi.models.base import BaseModel, VersionedMixin


class TokenBalance(VersionedMixin, BaseModel):
    """사용자별 TOA 토큰 잔액

    tokens와 total_purchased는 구매/전환 시 함께 증가하고,
    tokens와 total_spent는 전송 시 함께 변합니다.
    """

    __tablename__ = "token_balances"
    __table_args__ = (
        CheckConstraint("tokens >= 0", name="ck_token_balances_tokens_non_negative"),
    )

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_purchased: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
