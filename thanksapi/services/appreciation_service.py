"""
감사 서비스 - 무료 감사와 유료 토큰 전송

두 작업 모두 하나의 원자적 작업 단위로 실행됩니다:
원장 추가 + (제한 기록 또는 잔액 차감) + 포인트/카운터 갱신이 함께 커밋되고,
동시 쓰기 충돌 시 처음부터 다시 읽어 재시도합니다.
알림은 커밋 이후에 발송됩니다.
"""

import logging
from typing import List, Optional

from thanksapi.core.exceptions import (
    AlreadyThankedTodayError,
    BaseAPIException,
    DailyThanksExhaustedError,
    InsufficientBalanceError,
    NotFoundError,
    SelfAppreciationError,
    ValidationError,
)
from thanksapi.core.messages import THANK_YOU_MESSAGES, TOA_MESSAGES, pick_message
from thanksapi.models.profile import Technician
from thanksapi.models.transaction import TokenTransaction, TransactionType
from thanksapi.providers.queue.events import NotificationEvent, NotificationKind
from thanksapi.repositories.daily_limit_repository import DailyLimitRepository
from thanksapi.repositories.profile_repository import ResolvedAccount
from thanksapi.schemas.appreciation import (
    AppreciationResult,
    RateLimitStatus,
    TransactionHistoryResponse,
)
from thanksapi.schemas.pagination import PaginationLimits, PaginationMeta
from thanksapi.services.base_ledger_service import BaseLedgerService

logger = logging.getLogger(__name__)

SELF_THANK_MESSAGE = "You cannot thank yourself"
SELF_SEND_MESSAGE = "You cannot send tokens to yourself"


class AppreciationService(BaseLedgerService):
    """무료 감사 / 유료 토큰 전송 비즈니스 로직"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.limits = DailyLimitRepository(self.db)

    def _is_self(
        self,
        sender_id: str,
        sender: Optional[ResolvedAccount],
        recipient: Technician,
    ) -> bool:
        """발신자와 수신자가 같은 사람인지 (기본 ID와 인증 ID 모두 비교)"""
        recipient_ids = {recipient.id}
        if recipient.auth_uid:
            recipient_ids.add(recipient.auth_uid)
        if sender_id in recipient_ids:
            return True
        if sender is not None and recipient_ids.intersection(sender.identities):
            return True
        return False

    def _load_parties(
        self, sender_id: str, recipient_id: str, self_message: str
    ):
        """수신 기술자와 발신 계정을 잠금 조회하고 자기 자신 여부를 검사"""
        if sender_id == recipient_id:
            raise SelfAppreciationError(self_message)

        recipient = self.profiles.get_technician(recipient_id, lock=True)
        if recipient is None:
            raise NotFoundError(
                "Technician not found", details={"recipient_id": recipient_id}
            )

        sender = self.profiles.resolve(sender_id, lock=True)
        if self._is_self(sender_id, sender, recipient):
            raise SelfAppreciationError(self_message)
        return sender, recipient

    def send_free_thank_you(self, sender_id: str, recipient_id: str) -> AppreciationResult:
        """무료 감사 보내기

        수신자에게만 포인트가 적립되고, 발신자는 보낸 감사 수만 증가합니다.
        같은 (발신자, 기술자) 쌍은 하루에 한 번만 가능합니다.

        Args:
            sender_id: 발신자 ID (기본 ID 또는 인증 ID)
            recipient_id: 기술자 ID (기본 ID 또는 인증 ID)

        Returns:
            AppreciationResult: 생성된 거래 정보

        Raises:
            SelfAppreciationError: 자기 자신에게 보내는 경우
            NotFoundError: 기술자가 없는 경우
            AlreadyThankedTodayError: 오늘 이미 이 기술자에게 감사한 경우
            DailyThanksExhaustedError: 오늘 감사 가능한 기술자 수를 넘은 경우
            TransientStoreError: 동시 쓰기 충돌이 계속된 경우
        """
        events: List[NotificationEvent] = []

        def work() -> AppreciationResult:
            events.clear()
            sender, recipient = self._load_parties(sender_id, recipient_id, SELF_THANK_MESSAGE)
            sender_key = sender.id if sender else sender_id

            now = self.clock()
            today = self._today(now)
            record = self.limits.find(sender_key, today, lock=True)
            thanked = list(record.thanked_technicians) if record else []
            if recipient.id in thanked:
                raise AlreadyThankedTodayError(
                    details={"recipient_id": recipient.id, "date": today.isoformat()}
                )
            cap = record.max_daily_thanks if record else self.catalog.max_daily_thanks
            if len(thanked) >= cap:
                raise DailyThanksExhaustedError(
                    details={"thanked_today": len(thanked), "max_daily_thanks": cap}
                )

            recipient_points, _ = self.catalog.expected_points(TransactionType.THANK_YOU)
            message = pick_message(THANK_YOU_MESSAGES)
            transaction = self.transactions.append(
                TokenTransaction(
                    from_user_id=sender_key,
                    to_technician_id=recipient.id,
                    from_name=sender.display_name if sender else "Customer",
                    to_name=recipient.name or "Technician",
                    tokens=0,
                    message=message,
                    is_random_message=True,
                    type=TransactionType.THANK_YOU.value,
                    timestamp=now,
                    activity_date=today,
                    points_awarded=recipient_points,
                    sender_points_awarded=0,
                )
            )
            self.limits.record(record, sender_key, recipient.id, today, cap)

            recipient.points += recipient_points
            recipient.total_thank_yous += 1
            # 무료 감사는 발신자에게 포인트를 주지 않음
            if sender is not None:
                sender.profile.total_thank_yous_sent += 1
            self.db.flush()

            events.append(
                NotificationEvent(
                    recipient_address=recipient.email or "",
                    template_kind=NotificationKind.THANK_YOU,
                    parameters={
                        "technician_name": recipient.name,
                        "customer_name": transaction.from_name,
                        "points_awarded": recipient_points,
                        "message": message,
                    },
                    deduplication_id=f"{transaction.id}:thank_you",
                )
            )
            return AppreciationResult(
                success=True,
                transaction_id=transaction.id,
                type=TransactionType.THANK_YOU.value,
                tokens=0,
                points_awarded=recipient_points,
                sender_points_awarded=0,
                message=message,
            )

        try:
            result = self._atomic("send_free_thank_you", work)
        except BaseAPIException as e:
            logger.warning(
                f"Free thank-you rejected {sender_id} -> {recipient_id}: {e.message}"
            )
            raise

        logger.info(
            f"Free thank-you {result.transaction_id}: {sender_id} -> {recipient_id} "
            f"(+{result.points_awarded} points to recipient)"
        )
        self._emit(events)
        return result

    def send_tokens(
        self, sender_id: str, recipient_id: str, token_count: int
    ) -> AppreciationResult:
        """유료 TOA 토큰 전송

        발신자 잔액에서 토큰을 차감하고, 카탈로그 요율로 결제 금액,
        기술자 지급액, 플랫폼 수수료를 계산해 기록합니다.
        포인트는 토큰 수와 무관하게 거래당 고정으로 양쪽에 적립됩니다.

        Args:
            sender_id: 발신자 ID
            recipient_id: 기술자 ID
            token_count: 전송할 토큰 수

        Returns:
            AppreciationResult: 생성된 거래 정보와 전송 후 잔액

        Raises:
            SelfAppreciationError: 자기 자신에게 보내는 경우
            NotFoundError: 기술자가 없는 경우
            ValidationError: 토큰 수가 허용 범위를 벗어난 경우
            InsufficientBalanceError: 잔액이 부족한 경우
            TransientStoreError: 동시 쓰기 충돌이 계속된 경우
        """
        events: List[NotificationEvent] = []

        def work() -> AppreciationResult:
            events.clear()
            sender, recipient = self._load_parties(sender_id, recipient_id, SELF_SEND_MESSAGE)
            sender_key = sender.id if sender else sender_id

            if not self.catalog.is_valid_send_amount(token_count):
                raise ValidationError(
                    f"Token amount must be between {self.catalog.min_tokens_per_send} "
                    f"and {self.catalog.max_tokens_per_send}",
                    details={"token_count": token_count},
                )

            balance = self.balances.find_for_update(sender_key)
            if balance is None:
                raise InsufficientBalanceError(
                    details={"required": token_count, "available": 0}
                )
            self.balances.debit(balance, token_count)

            split = self.catalog.split_payment(token_count)
            recipient_points, sender_points = self.catalog.expected_points(
                TransactionType.TOA_TOKEN
            )
            now = self.clock()
            message = pick_message(TOA_MESSAGES)
            transaction = self.transactions.append(
                TokenTransaction(
                    from_user_id=sender_key,
                    to_technician_id=recipient.id,
                    from_name=sender.display_name if sender else "Customer",
                    to_name=recipient.name or "Technician",
                    tokens=token_count,
                    message=message,
                    is_random_message=True,
                    type=TransactionType.TOA_TOKEN.value,
                    timestamp=now,
                    activity_date=self._today(now),
                    dollar_value=split.dollar_value,
                    technician_payout=split.technician_payout,
                    platform_fee=split.platform_fee,
                    points_awarded=recipient_points,
                    sender_points_awarded=sender_points,
                )
            )

            recipient.total_tokens_received += token_count
            recipient.total_toa_value += split.dollar_value
            recipient.total_earnings += split.technician_payout
            recipient.total_thank_yous += 1
            recipient.points += recipient_points
            if sender is not None:
                sender.profile.points += sender_points
                sender.profile.total_tokens_sent += token_count
                sender.profile.total_thank_yous_sent += 1
            self.db.flush()

            parameters = {
                "technician_name": recipient.name,
                "customer_name": transaction.from_name,
                "tokens": token_count,
                "dollar_value": str(split.dollar_value),
                "message": message,
            }
            events.append(
                NotificationEvent(
                    recipient_address=recipient.email or "",
                    template_kind=NotificationKind.TOA_RECEIVED,
                    parameters={**parameters, "points_awarded": recipient_points},
                    deduplication_id=f"{transaction.id}:toa_received",
                )
            )
            events.append(
                NotificationEvent(
                    recipient_address=(sender.profile.email or "") if sender else "",
                    template_kind=NotificationKind.TOA_SENT,
                    parameters={**parameters, "points_awarded": sender_points},
                    deduplication_id=f"{transaction.id}:toa_sent",
                )
            )
            return AppreciationResult(
                success=True,
                transaction_id=transaction.id,
                type=TransactionType.TOA_TOKEN.value,
                tokens=token_count,
                points_awarded=recipient_points,
                sender_points_awarded=sender_points,
                dollar_value=split.dollar_value,
                technician_payout=split.technician_payout,
                platform_fee=split.platform_fee,
                message=message,
                sender_balance=balance.tokens,
            )

        try:
            result = self._atomic("send_tokens", work)
        except BaseAPIException as e:
            logger.warning(
                f"Token transfer rejected {sender_id} -> {recipient_id} ({token_count}): {e.message}"
            )
            raise

        logger.info(
            f"Token transfer {result.transaction_id}: {sender_id} -> {recipient_id} "
            f"{token_count} tokens (${result.dollar_value})"
        )
        self._emit(events)
        return result

    def get_limit_status(self, sender_id: str, recipient_id: str) -> RateLimitStatus:
        """오늘 이 기술자에게 무료 감사를 보낼 수 있는지 조회

        Args:
            sender_id: 발신자 ID
            recipient_id: 기술자 ID

        Returns:
            RateLimitStatus: 제한 상태 (기록 기반 + 원장 기반 건수)
        """
        recipient = self.profiles.get_technician(recipient_id)
        if recipient is None:
            raise NotFoundError(
                "Technician not found", details={"recipient_id": recipient_id}
            )
        sender_key = self._ledger_key(sender_id)
        today = self._today()
        free_count = self.transactions.count_free_thank_yous(sender_key, recipient.id, today)
        return self.limits.status(
            sender_key,
            recipient.id,
            today,
            self.catalog.max_daily_thanks,
            free_thank_yous_to_recipient=free_count,
        )

    def get_history(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> TransactionHistoryResponse:
        """보낸/받은 거래 내역 (최신순)"""
        max_limit = PaginationLimits.TRANSACTION_HISTORY["max"]
        if limit > max_limit:
            limit = max_limit

        entries, total_count = self.transactions.get_user_history(
            self._identities(user_id), limit=limit, offset=offset
        )
        logger.info(f"Retrieved {len(entries)} transactions for user {user_id}")
        return TransactionHistoryResponse(
            entries=entries,
            meta=PaginationMeta(
                limit=limit,
                offset=offset,
                total_count=total_count,
                has_next=offset + limit < total_count,
            ),
        )
