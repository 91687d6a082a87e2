"""Base service for ledger operations with common plumbing."""

import logging
from datetime import date, datetime
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.orm import Session

from thanksapi.config import Settings
from thanksapi.core.catalog import RateCatalog
from thanksapi.core.retry import run_atomic
from thanksapi.providers.queue.events import NotificationEvent
from thanksapi.repositories.balance_repository import BalanceRepository
from thanksapi.repositories.profile_repository import ProfileRepository, ResolvedAccount
from thanksapi.repositories.transaction_repository import TransactionRepository
from thanksapi.services.notification_service import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from thanksapi.utils.timezone_utils import local_date, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseLedgerService:
    """
    Base service for operations that move tokens or points.

    Provides:
    - the injected rate catalog
    - identity normalization (ledger key = resolved profile id)
    - the atomic unit runner with bounded retry
    - post-commit notification dispatch

    Subclasses (AppreciationService, PurchaseService, ConversionService)
    inherit this.
    """

    def __init__(
        self,
        db: Session,
        settings: Settings,
        catalog: RateCatalog,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.settings = settings
        self.catalog = catalog
        self.dispatcher = dispatcher or LoggingNotificationDispatcher()
        self.clock = clock
        self.profiles = ProfileRepository(db)
        self.balances = BalanceRepository(db)
        self.transactions = TransactionRepository(db)

    def _today(self, now: Optional[datetime] = None) -> date:
        return local_date(self.settings.TIMEZONE, now or self.clock())

    def _ledger_key(self, identity: str) -> str:
        """원장/잔액에 쓰는 사용자 키 (프로필이 있으면 프로필 기본 ID)"""
        resolved = self.profiles.resolve(identity)
        return resolved.id if resolved else identity

    def _identities(self, identity: str) -> List[str]:
        resolved: Optional[ResolvedAccount] = self.profiles.resolve(identity)
        if resolved is None:
            return [identity]
        ids = resolved.identities
        if identity not in ids:
            ids.append(identity)
        return ids

    def _atomic(self, operation: str, work: Callable[[], T]) -> T:
        return run_atomic(
            self.db,
            work,
            operation=operation,
            max_attempts=self.settings.TRANSACTION_MAX_ATTEMPTS,
            base_delay=self.settings.TRANSACTION_RETRY_BASE_DELAY,
        )

    def _emit(self, events: List[NotificationEvent]) -> None:
        """커밋 이후 알림 발송 (실패는 발송기에서 로그 후 무시)"""
        if not events:
            return
        try:
            sent = self.dispatcher.dispatch_all(events)
        except Exception as e:
            # 이미 커밋된 작업이므로 알림 실패는 기록만 한다
            logger.error(
                f"Notification dispatch failed for {len(events)} events: {e}",
                exc_info=True,
            )
            return
        logger.debug(f"Dispatched {sent}/{len(events)} notifications")
