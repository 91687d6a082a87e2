import logging
from decimal import Decimal
from typing import Optional

from thanksapi.core.exceptions import ValidationError
from thanksapi.models.transaction import TokenTransaction, TransactionType
from thanksapi.schemas.tokens import (
    PurchaseResult,
    TokenBalanceResponse,
    TokenPackListResponse,
    TokenPackResponse,
)
from thanksapi.services.base_ledger_service import BaseLedgerService

logger = logging.getLogger(__name__)


class PurchaseService(BaseLedgerService):
    """토큰 구매 반영과 잔액 조회"""

    def get_balance(self, user_id: str) -> TokenBalanceResponse:
        """토큰 잔액 조회 (처음 접근 시 0으로 생성)

        Args:
            user_id: 사용자 ID

        Returns:
            TokenBalanceResponse: 잔액 정보
        """
        user_key = self._ledger_key(user_id)
        existing = self.balances.get_balance(user_key)
        if existing is not None:
            return existing

        def work() -> TokenBalanceResponse:
            balance = self.balances.get_or_create(user_key)
            return TokenBalanceResponse.model_validate(balance)

        balance = self._atomic("create_balance", work)
        logger.info(f"Created empty token balance for user {user_key}")
        return balance

    def list_packs(self) -> TokenPackListResponse:
        packs = [
            TokenPackResponse(
                id=pack.id,
                tokens=pack.tokens,
                price_cents=pack.price_cents,
                price=pack.price,
                label=pack.label,
                popular=pack.popular,
                price_per_token=pack.price / Decimal(pack.tokens),
            )
            for pack in self.catalog.list_packs()
        ]
        return TokenPackListResponse(packs=packs)

    def _validate_purchase(
        self,
        token_count: int,
        purchase_amount: Decimal,
        external_reference: str,
        pack_id: Optional[str],
    ) -> None:
        if token_count <= 0:
            raise ValidationError("Token count must be positive", details={"token_count": token_count})
        if purchase_amount < 0:
            raise ValidationError(
                "Purchase amount must not be negative",
                details={"purchase_amount": str(purchase_amount)},
            )
        if not external_reference or not external_reference.strip():
            raise ValidationError("External payment reference is required")
        if pack_id is None:
            return

        pack = self.catalog.get_pack(pack_id)
        if pack is None:
            raise ValidationError("Unknown token pack", details={"pack_id": pack_id})
        if pack.tokens != token_count or pack.price != purchase_amount:
            raise ValidationError(
                "Purchase does not match token pack",
                details={
                    "pack_id": pack_id,
                    "expected_tokens": pack.tokens,
                    "expected_amount": str(pack.price),
                },
            )

    def add_tokens_to_balance(
        self,
        user_id: str,
        token_count: int,
        purchase_amount: Decimal,
        external_reference: str,
        pack_id: Optional[str] = None,
    ) -> PurchaseResult:
        """결제 완료된 구매를 잔액에 반영 (결제 참조 기준 멱등)

        같은 external_reference로 다시 호출되면 잔액을 바꾸지 않고
        duplicate=True 결과를 반환합니다. 구매는 포인트를 적립하지 않습니다.

        Args:
            user_id: 토큰을 받을 사용자 ID
            token_count: 지급할 토큰 수
            purchase_amount: 결제 금액 (달러)
            external_reference: 결제 처리사의 참조 ID
            pack_id: 토큰 팩 ID (선택, 주어지면 팩 구성과 대조)

        Returns:
            PurchaseResult: 반영 결과
        """
        purchase_amount = Decimal(str(purchase_amount))
        self._validate_purchase(token_count, purchase_amount, external_reference, pack_id)
        reference = external_reference.strip()
        user_key = self._ledger_key(user_id)

        def work() -> PurchaseResult:
            existing = self.transactions.find_by_external_reference(reference)
            if existing is not None:
                current = self.balances.get_balance(existing.from_user_id)
                return PurchaseResult(
                    applied=False,
                    duplicate=True,
                    transaction_id=existing.id,
                    tokens=existing.tokens,
                    new_token_balance=current.tokens if current else 0,
                    message="Payment already processed",
                )

            balance = self.balances.get_or_create(user_key)
            self.balances.credit(balance, token_count)

            now = self.clock()
            transaction = self.transactions.append(
                TokenTransaction(
                    from_user_id=user_key,
                    to_technician_id="",
                    from_name="",
                    to_name="",
                    tokens=token_count,
                    message=f"Purchased {token_count} TOA tokens (${purchase_amount:.2f})",
                    is_random_message=False,
                    type=TransactionType.TOKEN_PURCHASE.value,
                    timestamp=now,
                    activity_date=self._today(now),
                    dollar_value=purchase_amount,
                    points_awarded=0,
                    sender_points_awarded=0,
                    external_reference=reference,
                )
            )
            return PurchaseResult(
                applied=True,
                duplicate=False,
                transaction_id=transaction.id,
                tokens=token_count,
                new_token_balance=balance.tokens,
                message=f"Added {token_count} tokens",
            )

        result = self._atomic("add_tokens_to_balance", work)
        if result.duplicate:
            logger.warning(
                f"Duplicate payment reference {reference} for user {user_key}; no tokens added"
            )
        else:
            logger.info(
                f"Purchase {reference}: +{token_count} tokens for user {user_key} "
                f"(${purchase_amount}), balance {result.new_token_balance}"
            )
        return result
