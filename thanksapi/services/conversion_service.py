"""
포인트 -> TOA 토큰 전환 서비스

전환은 하나의 원자적 작업 단위입니다:
프로필 포인트 차감, 잔액 증가, 전환 기록, 원장 기록이 함께 커밋되거나
모두 취소됩니다.
"""

import logging
from typing import List

from thanksapi.core.exceptions import (
    BaseAPIException,
    DailyConversionLimitError,
    InsufficientPointsError,
    NotFoundError,
    ValidationError,
)
from thanksapi.models.conversion import PointsConversion
from thanksapi.models.transaction import TokenTransaction, TransactionType
from thanksapi.providers.queue.events import NotificationEvent, NotificationKind
from thanksapi.repositories.conversion_repository import ConversionRepository
from thanksapi.schemas.conversion import (
    ConversionHistoryResponse,
    ConversionResult,
    ConversionStatus,
)
from thanksapi.schemas.pagination import PaginationLimits
from thanksapi.services.base_ledger_service import BaseLedgerService

logger = logging.getLogger(__name__)


class ConversionService(BaseLedgerService):
    """포인트 전환 비즈니스 로직"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.conversions = ConversionRepository(self.db)

    def _validate_amount(self, points_to_convert: int) -> None:
        minimum = self.catalog.minimum_conversion_points
        rate = self.catalog.points_per_token
        if points_to_convert < minimum:
            raise ValidationError(
                f"Minimum conversion is {minimum} points",
                details={"points_to_convert": points_to_convert},
            )
        if points_to_convert % rate != 0:
            raise ValidationError(
                f"Points must be a multiple of {rate}",
                details={"points_to_convert": points_to_convert},
            )

    def convert_points_to_toa(self, user_id: str, points_to_convert: int) -> ConversionResult:
        """포인트를 TOA 토큰으로 전환

        Args:
            user_id: 사용자 ID (기본 ID 또는 인증 ID)
            points_to_convert: 전환할 포인트 (최소값 이상, 전환 비율의 배수)

        Returns:
            ConversionResult: 생성 토큰 수와 전환 후 포인트/토큰 잔액

        Raises:
            ValidationError: 최소값 미만이거나 배수가 아닌 경우
            NotFoundError: 계정이 없는 경우
            DailyConversionLimitError: 오늘 전환 횟수를 초과한 경우
            InsufficientPointsError: 포인트가 부족한 경우
        """
        events: List[NotificationEvent] = []

        def work() -> ConversionResult:
            events.clear()
            account = self.profiles.resolve(user_id, lock=True)
            if account is None:
                raise NotFoundError("Account not found", details={"user_id": user_id})

            now = self.clock()
            today = self._today(now)
            conversions_today = self.conversions.count_on(account.identities, today)
            if conversions_today >= self.catalog.max_daily_conversions:
                raise DailyConversionLimitError(
                    details={
                        "conversions_today": conversions_today,
                        "max_daily_conversions": self.catalog.max_daily_conversions,
                    }
                )

            profile = account.profile
            if profile.points < points_to_convert:
                raise InsufficientPointsError(
                    details={"available": profile.points, "required": points_to_convert}
                )

            tokens_generated = self.catalog.tokens_for_points(points_to_convert)
            profile.points -= points_to_convert

            balance = self.balances.get_or_create(account.id)
            self.balances.credit(balance, tokens_generated)

            conversion = self.conversions.add(
                PointsConversion(
                    user_id=account.id,
                    account_kind=account.kind.value,
                    points_converted=points_to_convert,
                    tokens_generated=tokens_generated,
                    conversion_rate=self.catalog.points_per_token,
                    conversion_date=today,
                    converted_at=now,
                )
            )
            self.transactions.append(
                TokenTransaction(
                    from_user_id=account.id,
                    to_technician_id="",
                    from_name=account.display_name,
                    to_name="",
                    tokens=tokens_generated,
                    message=f"Converted {points_to_convert} points to {tokens_generated} TOA tokens",
                    is_random_message=False,
                    type=TransactionType.POINTS_CONVERSION.value,
                    timestamp=now,
                    activity_date=today,
                    points_awarded=0,
                    sender_points_awarded=0,
                )
            )
            self.db.flush()

            events.append(
                NotificationEvent(
                    recipient_address=profile.email or "",
                    template_kind=NotificationKind.POINTS_CONVERTED,
                    parameters={
                        "name": account.display_name,
                        "points_converted": points_to_convert,
                        "tokens_generated": tokens_generated,
                        "points_remaining": profile.points,
                    },
                    deduplication_id=f"{conversion.id}:points_converted",
                )
            )
            return ConversionResult(
                success=True,
                conversion_id=conversion.id,
                points_converted=points_to_convert,
                tokens_generated=tokens_generated,
                new_points_balance=profile.points,
                new_token_balance=balance.tokens,
                message=f"Converted {points_to_convert} points to {tokens_generated} TOA tokens",
            )

        try:
            self._validate_amount(points_to_convert)
            result = self._atomic("convert_points_to_toa", work)
        except BaseAPIException as e:
            logger.warning(
                f"Conversion rejected for user {user_id} ({points_to_convert} points): {e.message}"
            )
            raise

        logger.info(
            f"Conversion {result.conversion_id}: user {user_id} "
            f"{points_to_convert} points -> {result.tokens_generated} tokens"
        )
        self._emit(events)
        return result

    def get_conversion_status(self, user_id: str) -> ConversionStatus:
        """전환 가능 포인트와 오늘 남은 전환 횟수 조회"""
        account = self.profiles.resolve(user_id)
        if account is None:
            raise NotFoundError("Account not found", details={"user_id": user_id})

        rate = self.catalog.points_per_token
        available = account.profile.points
        convertible = (available // rate) * rate
        conversions_today = self.conversions.count_on(account.identities, self._today())
        remaining = max(self.catalog.max_daily_conversions - conversions_today, 0)
        return ConversionStatus(
            user_id=account.id,
            account_kind=account.kind.value,
            available_points=available,
            convertible_points=convertible,
            can_convert_tokens=convertible // rate,
            can_convert=convertible >= self.catalog.minimum_conversion_points and remaining > 0,
            conversions_today=conversions_today,
            remaining_conversions_today=remaining,
            conversion_rate=rate,
            minimum_conversion=self.catalog.minimum_conversion_points,
        )

    def get_conversion_history(self, user_id: str, limit: int = 20) -> ConversionHistoryResponse:
        limit = min(limit, PaginationLimits.CONVERSION_HISTORY["max"])
        records = self.conversions.get_history(self._identities(user_id), limit=limit)
        return ConversionHistoryResponse(
            conversions=records,
            total_points_converted=sum(r.points_converted for r in records),
            total_tokens_generated=sum(r.tokens_generated for r in records),
        )
