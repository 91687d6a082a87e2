from datetime import date, datetime

from sqlalchemy import Date, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from thanksapi.models.base import BaseModel, generate_id


class PointsConversion(BaseModel):
    """포인트 -> 토큰 전환 기록 (생성 후 변경 없음, 감사/이력 조회용)"""

    __tablename__ = "points_conversions"
    __table_args__ = (
        Index("idx_points_conversions_user_date", "user_id", "conversion_date"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    account_kind: Mapped[str] = mapped_column(String(32), nullable=False)
    points_converted: Mapped[int] = mapped_column(Integer, nullable=False)
    tokens_generated: Mapped[int] = mapped_column(Integer, nullable=False)
    conversion_rate: Mapped[int] = mapped_column(Integer, nullable=False)
    conversion_date: Mapped[date] = mapped_column(Date, nullable=False)
    converted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
