from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from thanksapi.models.correction import LedgerCorrection
from thanksapi.repositories.base import BaseRepository
from thanksapi.schemas.reconciliation import CorrectionEntry


class CorrectionRepository(BaseRepository[LedgerCorrection, CorrectionEntry]):
    def __init__(self, db: Session):
        super().__init__(LedgerCorrection, CorrectionEntry, db)

    def log(
        self,
        run_id: str,
        entity_type: str,
        entity_id: str,
        field: str,
        old_value: Optional[str],
        new_value: str,
        reason: str,
    ) -> CorrectionEntry:
        """보정 기록 추가 (flush만 수행)"""
        entry = self.add(
            LedgerCorrection(
                run_id=run_id,
                entity_type=entity_type,
                entity_id=entity_id,
                field=field,
                old_value=old_value,
                new_value=new_value,
                reason=reason,
            )
        )
        return self._to_schema(entry)  # type: ignore[return-value]

    def list_recent(
        self, run_id: Optional[str] = None, limit: int = 100
    ) -> List[CorrectionEntry]:
        query = self.db.query(LedgerCorrection)
        if run_id:
            query = query.filter(LedgerCorrection.run_id == run_id)
        rows = query.order_by(desc(LedgerCorrection.created_at)).limit(limit).all()
        return self._to_schemas(rows)
