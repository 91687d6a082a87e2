from datetime import date
from typing import List

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from thanksapi.models.conversion import PointsConversion
from thanksapi.repositories.base import BaseRepository
from thanksapi.schemas.conversion import ConversionRecord


class ConversionRepository(BaseRepository[PointsConversion, ConversionRecord]):
    def __init__(self, db: Session):
        super().__init__(PointsConversion, ConversionRecord, db)

    def count_on(self, user_ids: List[str], conversion_date: date) -> int:
        """특정 날짜의 전환 횟수"""
        return (
            self.db.query(func.count(PointsConversion.id))
            .filter(
                PointsConversion.user_id.in_(user_ids),
                PointsConversion.conversion_date == conversion_date,
            )
            .scalar()
            or 0
        )

    def sum_points_converted(self, user_ids: List[str]) -> int:
        return (
            self.db.query(func.coalesce(func.sum(PointsConversion.points_converted), 0))
            .filter(PointsConversion.user_id.in_(user_ids))
            .scalar()
            or 0
        )

    def get_history(self, user_ids: List[str], limit: int = 20) -> List[ConversionRecord]:
        rows = (
            self.db.query(PointsConversion)
            .filter(PointsConversion.user_id.in_(user_ids))
            .order_by(desc(PointsConversion.converted_at))
            .limit(limit)
            .all()
        )
        return self._to_schemas(rows)
