from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from thanksapi.core.exceptions import InsufficientBalanceError, TransientStoreError
from thanksapi.core.retry import backoff_delay, run_atomic


@pytest.fixture
def mock_db():
    return Mock()


class TestRunAtomic:
    """원자적 작업 단위 재시도 테스트"""

    def test_commits_once_on_success(self, mock_db):
        work = Mock(return_value="ok")

        result = run_atomic(mock_db, work, operation="test")

        assert result == "ok"
        work.assert_called_once()
        mock_db.commit.assert_called_once()
        mock_db.rollback.assert_not_called()

    @patch("thanksapi.core.retry.time.sleep")
    def test_retries_version_conflict_then_succeeds(self, mock_sleep, mock_db):
        """버전 충돌 후 처음부터 다시 실행 테스트"""
        work = Mock(side_effect=[StaleDataError("stale"), "ok"])

        result = run_atomic(mock_db, work, operation="test", max_attempts=3)

        assert result == "ok"
        assert work.call_count == 2
        mock_db.rollback.assert_called_once()
        mock_sleep.assert_called_once()

    @patch("thanksapi.core.retry.time.sleep")
    def test_retries_commit_time_unique_violation(self, mock_sleep, mock_db):
        mock_db.commit.side_effect = [
            IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")),
            None,
        ]
        work = Mock(return_value="ok")

        assert run_atomic(mock_db, work, operation="test") == "ok"
        assert work.call_count == 2

    @patch("thanksapi.core.retry.time.sleep")
    def test_gives_up_with_transient_error(self, mock_sleep, mock_db):
        work = Mock(side_effect=StaleDataError("stale"))

        with pytest.raises(TransientStoreError) as exc_info:
            run_atomic(mock_db, work, operation="send_tokens", max_attempts=3)

        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "Please try again"
        assert work.call_count == 3
        assert mock_db.rollback.call_count == 3
        assert mock_sleep.call_count == 2

    def test_business_error_is_rolled_back_not_retried(self, mock_db):
        """비즈니스 예외는 재시도 없이 롤백 후 전파 테스트"""
        work = Mock(side_effect=InsufficientBalanceError())

        with pytest.raises(InsufficientBalanceError):
            run_atomic(mock_db, work, operation="test")

        work.assert_called_once()
        mock_db.rollback.assert_called_once()
        mock_db.commit.assert_not_called()


def test_backoff_delay_is_capped():
    for attempt in range(1, 10):
        assert backoff_delay(attempt, base_delay=0.1, max_delay=0.5) <= 0.75
