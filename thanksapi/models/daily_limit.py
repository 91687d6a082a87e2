from datetime import date
from typing import List

from sqlalchemy import JSON, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from thanksapi.models.base import BaseModel, VersionedMixin, generate_id


class DailyThankLimit(VersionedMixin, BaseModel):
    """발신자별 하루 무료 감사 기록

    (user_id, limit_date) 당 한 행. thanked_technicians는 그날 이미 감사한
    기술자 ID 목록이며 하루 안에서는 늘어나기만 합니다.
    다음 날에는 새 행이 생기고 이전 행은 그대로 남습니다.
    """

    __tablename__ = "daily_thank_limits"
    __table_args__ = (
        UniqueConstraint("user_id", "limit_date", name="uq_daily_thank_limits_user_day"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    limit_date: Mapped[date] = mapped_column(Date, nullable=False)
    thanked_technicians: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    max_daily_thanks: Mapped[int] = mapped_column(Integer, nullable=False)
