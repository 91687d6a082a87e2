"""
정합성 보정 기록

정합성 배치가 원장이나 프로필 필드를 수정할 때마다 한 행씩 남겨
일반 트래픽과 구분되는 의도적인 보정임을 추적할 수 있게 합니다.
"""

from typing import Optional

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from thanksapi.models.base import BaseModel, generate_id


class LedgerCorrection(BaseModel):
    __tablename__ = "ledger_corrections"
    __table_args__ = (
        Index("idx_ledger_corrections_run", "run_id"),
        Index("idx_ledger_corrections_entity", "entity_type", "entity_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    run_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)  # transaction | technician | customer | admin
    entity_id: Mapped[str] = mapped_column(String(128), nullable=False)
    field: Mapped[str] = mapped_column(String(64), nullable=False)
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
