"""
토큰 잔액 리포지토리

잔액 행은 처음 접근할 때 0으로 생성되고 삭제되지 않습니다.
credit/debit은 세 카운터(tokens, total_purchased, total_spent)를
한 번의 갱신으로 함께 바꾸며, 커밋은 호출한 서비스가 담당합니다.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from thanksapi.core.exceptions import InsufficientBalanceError
from thanksapi.models.balance import TokenBalance
from thanksapi.repositories.base import BaseRepository
from thanksapi.schemas.tokens import TokenBalanceResponse


class BalanceRepository(BaseRepository[TokenBalance, TokenBalanceResponse]):
    def __init__(self, db: Session):
        super().__init__(TokenBalance, TokenBalanceResponse, db)

    def find_for_update(self, user_id: str) -> Optional[TokenBalance]:
        """잔액 행을 잠금 조회 (없으면 None)"""
        return (
            self.db.query(TokenBalance)
            .filter(TokenBalance.user_id == user_id)
            .with_for_update()
            .first()
        )

    def get_or_create(self, user_id: str) -> TokenBalance:
        """잔액 행을 잠금 조회하고, 없으면 0으로 생성

        동시에 두 요청이 생성하면 한쪽은 기본 키 충돌(IntegrityError)로
        실패하고 원자적 작업 단위의 재시도에서 기존 행을 읽게 됩니다.
        """
        balance = self.find_for_update(user_id)
        if balance is None:
            balance = TokenBalance(
                user_id=user_id,
                tokens=0,
                total_purchased=0,
                total_spent=0,
                last_updated=datetime.now(timezone.utc),
            )
            self.add(balance)
        return balance

    def credit(self, balance: TokenBalance, tokens: int) -> TokenBalance:
        """구매/전환으로 토큰 증가 (tokens, total_purchased 동시 증가)"""
        balance.tokens += tokens
        balance.total_purchased += tokens
        balance.last_updated = datetime.now(timezone.utc)
        self.db.flush()
        return balance

    def debit(self, balance: TokenBalance, tokens: int) -> TokenBalance:
        """전송으로 토큰 차감 (tokens 감소, total_spent 증가)

        Raises:
            InsufficientBalanceError: 잔액이 부족한 경우
        """
        if balance.tokens < tokens:
            raise InsufficientBalanceError(
                details={"required": tokens, "available": balance.tokens}
            )
        balance.tokens -= tokens
        balance.total_spent += tokens
        balance.last_updated = datetime.now(timezone.utc)
        self.db.flush()
        return balance

    def get_balance(self, user_id: str) -> Optional[TokenBalanceResponse]:
        return self._to_schema(self.db.get(TokenBalance, user_id))
