"""
Bounded retry for atomic ledger units.

Every money-moving operation runs its reads, validation and writes inside
one callable. The callable is committed as a whole; if the store reports a
concurrent write conflict the session is rolled back and the callable is run
again from its reads, with exponential backoff and jitter.
"""
import logging
import random
import time
from typing import Callable, Tuple, Type, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from thanksapi.core.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 버전 충돌, 유니크 제약 경합, 잠금 대기 시간 초과
RETRYABLE_ERRORS: Tuple[Type[Exception], ...] = (
    StaleDataError,
    IntegrityError,
    OperationalError,
)


def backoff_delay(attempt: int, base_delay: float, max_delay: float = 1.0) -> float:
    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
    return delay * (0.5 + random.random())


def run_atomic(
    db: Session,
    work: Callable[[], T],
    operation: str,
    max_attempts: int = 5,
    base_delay: float = 0.05,
) -> T:
    """
    Run ``work`` and commit it as a single unit.

    Args:
        db: session the unit reads and writes through
        work: callable performing reads, validation and writes (no commit)
        operation: name used in log lines
        max_attempts: attempts before giving up
        base_delay: first backoff delay in seconds

    Returns:
        Whatever ``work`` returned on the committed attempt

    Raises:
        TransientStoreError: conflicts persisted for every attempt
        Any exception raised by ``work`` itself (rolled back, not retried)
    """
    for attempt in range(1, max_attempts + 1):
        try:
            result = work()
            db.commit()
            return result
        except RETRYABLE_ERRORS as e:
            db.rollback()
            if attempt >= max_attempts:
                logger.error(
                    f"{operation}: giving up after {attempt} attempts ({type(e).__name__}: {e})"
                )
                raise TransientStoreError(
                    details={"operation": operation, "attempts": attempt}
                ) from e

            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                f"{operation}: conflict on attempt {attempt}/{max_attempts} "
                f"({type(e).__name__}), retrying in {delay:.3f}s"
            )
            time.sleep(delay)
        except Exception:
            db.rollback()
            raise

    # max_attempts < 1
    raise TransientStoreError(details={"operation": operation, "attempts": 0})
