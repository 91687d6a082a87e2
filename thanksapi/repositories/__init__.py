# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .balance_repository import BalanceRepository
from .transaction_repository import TransactionRepository
from .daily_limit_repository import DailyLimitRepository
from .profile_repository import ProfileRepository, ResolvedAccount
from .conversion_repository import ConversionRepository
from .correction_repository import CorrectionRepository

__all__ = [
    "BaseRepository",
    "BalanceRepository",
    "TransactionRepository",
    "DailyLimitRepository",
    "ProfileRepository",
    "ResolvedAccount",
    "ConversionRepository",
    "CorrectionRepository",
]
