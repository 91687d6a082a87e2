"""
거래 원장 리포지토리

일반 트래픽에서는 append(INSERT)만 사용합니다.
patch_field는 정합성 배치 전용이며, 관찰한 값이 그대로일 때만
갱신하는 조건부 UPDATE입니다.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Iterator, List, Optional, Tuple

from sqlalchemy import desc, func, or_, update
from sqlalchemy.orm import Session

from thanksapi.models.transaction import TokenTransaction, TransactionType
from thanksapi.repositories.base import BaseRepository
from thanksapi.schemas.appreciation import TransactionEntry
from thanksapi.schemas.reconciliation import TransactionFilter


class TransactionRepository(BaseRepository[TokenTransaction, TransactionEntry]):
    def __init__(self, db: Session):
        super().__init__(TokenTransaction, TransactionEntry, db)

    def append(self, transaction: TokenTransaction) -> TokenTransaction:
        """원장에 거래 추가 (flush만 수행)"""
        return self.add(transaction)

    def find_by_external_reference(self, reference: str) -> Optional[TokenTransaction]:
        return (
            self.db.query(TokenTransaction)
            .filter(TokenTransaction.external_reference == reference)
            .first()
        )

    def count_free_thank_yous(
        self, sender_id: str, recipient_id: str, activity_date: date
    ) -> int:
        """특정 날짜에 발신자가 기술자에게 보낸 무료 감사 거래 수"""
        return (
            self.db.query(func.count(TokenTransaction.id))
            .filter(
                TokenTransaction.from_user_id == sender_id,
                TokenTransaction.to_technician_id == recipient_id,
                TokenTransaction.activity_date == activity_date,
                TokenTransaction.type == TransactionType.THANK_YOU.value,
            )
            .scalar()
            or 0
        )

    def get_user_history(
        self, user_ids: List[str], limit: int = 50, offset: int = 0
    ) -> Tuple[List[TransactionEntry], int]:
        """보낸 거래와 받은 거래를 최신순으로 조회

        Args:
            user_ids: 사용자를 가리키는 ID 목록 (기본 ID, 인증 ID)
            limit: 페이지 크기
            offset: 오프셋

        Returns:
            (거래 목록, 전체 건수)
        """
        query = self.db.query(TokenTransaction).filter(
            or_(
                TokenTransaction.from_user_id.in_(user_ids),
                TokenTransaction.to_technician_id.in_(user_ids),
            )
        )
        total_count = query.count()
        rows = (
            query.order_by(desc(TokenTransaction.timestamp), desc(TokenTransaction.id))
            .limit(limit)
            .offset(offset)
            .all()
        )
        return self._to_schemas(rows), total_count

    def iter_all(self, batch_size: int = 500) -> Iterator[TokenTransaction]:
        """감사용 전체 스캔 (ID 순 배치 조회)"""
        last_id = ""
        while True:
            batch = (
                self.db.query(TokenTransaction)
                .filter(TokenTransaction.id > last_id)
                .order_by(TokenTransaction.id)
                .limit(batch_size)
                .all()
            )
            if not batch:
                return
            for row in batch:
                yield row
            last_id = batch[-1].id

    def find_filtered(self, filters: TransactionFilter) -> List[TokenTransaction]:
        """관리자 조회용 필터 적용 (최신순, 이상 여부 필터는 호출자가 처리)"""
        query = self.db.query(TokenTransaction)
        if filters.type:
            query = query.filter(TokenTransaction.type == filters.type)
        if filters.user_id:
            query = query.filter(TokenTransaction.from_user_id == filters.user_id)
        if filters.technician_id:
            query = query.filter(TokenTransaction.to_technician_id == filters.technician_id)
        if filters.start_date:
            query = query.filter(TokenTransaction.activity_date >= filters.start_date)
        if filters.end_date:
            query = query.filter(TokenTransaction.activity_date <= filters.end_date)
        if filters.min_tokens is not None:
            query = query.filter(TokenTransaction.tokens >= filters.min_tokens)
        if filters.max_tokens is not None:
            query = query.filter(TokenTransaction.tokens <= filters.max_tokens)
        return query.order_by(
            desc(TokenTransaction.timestamp), desc(TokenTransaction.id)
        ).all()

    def technician_totals(self, user_ids: List[str]) -> Tuple[int, Decimal, Decimal, int]:
        """기술자가 받은 거래 합계

        Returns:
            (받은 토큰 수, 유료 전송 금액 합, 지급액 합, 받은 감사 건수)
        """
        received = TokenTransaction.to_technician_id.in_(user_ids)
        tokens, toa_value, earnings = (
            self.db.query(
                func.coalesce(func.sum(TokenTransaction.tokens), 0),
                func.coalesce(func.sum(TokenTransaction.dollar_value), 0),
                func.coalesce(func.sum(TokenTransaction.technician_payout), 0),
            )
            .filter(received, TokenTransaction.type == TransactionType.TOA_TOKEN.value)
            .one()
        )
        thank_yous = (
            self.db.query(func.count(TokenTransaction.id))
            .filter(
                received,
                TokenTransaction.type.in_(
                    [TransactionType.THANK_YOU.value, TransactionType.TOA_TOKEN.value]
                ),
            )
            .scalar()
            or 0
        )
        return int(tokens), Decimal(str(toa_value)), Decimal(str(earnings)), int(thank_yous)

    def sum_points_received(self, user_ids: List[str]) -> int:
        return (
            self.db.query(func.coalesce(func.sum(TokenTransaction.points_awarded), 0))
            .filter(TokenTransaction.to_technician_id.in_(user_ids))
            .scalar()
            or 0
        )

    def sum_points_earned_as_sender(self, user_ids: List[str]) -> int:
        return (
            self.db.query(func.coalesce(func.sum(TokenTransaction.sender_points_awarded), 0))
            .filter(TokenTransaction.from_user_id.in_(user_ids))
            .scalar()
            or 0
        )

    def patch_field(
        self, transaction_id: str, field: str, observed: Any, new_value: Any
    ) -> bool:
        """관찰한 값이 그대로일 때만 필드를 수정 (정합성 배치 전용)

        Returns:
            bool: 실제로 한 행이 수정되었는지
        """
        column = getattr(TokenTransaction, field)
        condition = column.is_(None) if observed is None else column == observed
        result = self.db.execute(
            update(TokenTransaction)
            .where(TokenTransaction.id == transaction_id, condition)
            .values({field: new_value})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
