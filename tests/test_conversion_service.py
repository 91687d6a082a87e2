from datetime import datetime, timedelta, timezone

import pytest

from thanksapi.core.catalog import RateCatalog
from thanksapi.core.exceptions import (
    DailyConversionLimitError,
    InsufficientPointsError,
    NotFoundError,
    ValidationError,
)
from thanksapi.models.balance import TokenBalance
from thanksapi.models.conversion import PointsConversion
from thanksapi.models.profile import Customer, Technician
from thanksapi.models.transaction import TokenTransaction
from thanksapi.providers.queue.events import NotificationKind
from thanksapi.services.conversion_service import ConversionService


@pytest.fixture
def technician_with_points(seed, db):
    db.get(Technician, "tech-1").points = 27
    db.commit()
    return db


class TestConvertPointsToToa:
    """포인트 전환 테스트"""

    def test_converts_points_to_tokens(self, technician_with_points, conversion_service, db):
        result = conversion_service.convert_points_to_toa("tech-1", 25)

        assert result.success is True
        assert result.tokens_generated == 5
        assert result.new_points_balance == 2
        assert result.new_token_balance == 5

        assert db.get(Technician, "tech-1").points == 2
        balance = db.get(TokenBalance, "tech-1")
        assert balance.tokens == 5
        assert balance.total_purchased == 5

        conversion = db.get(PointsConversion, result.conversion_id)
        assert conversion.account_kind == "technician"
        assert conversion.conversion_rate == 5

        ledger_row = db.query(TokenTransaction).filter_by(type="points_conversion").one()
        assert ledger_row.tokens == 5
        assert ledger_row.points_awarded == 0

    def test_auth_id_resolves_to_profile(self, technician_with_points, conversion_service, db):
        result = conversion_service.convert_points_to_toa("auth-tech-1", 5)

        assert result.tokens_generated == 1
        assert db.get(TokenBalance, "tech-1").tokens == 1

    def test_customer_can_convert(self, seed, conversion_service, db):
        db.get(Customer, "cust-1").points = 10
        db.commit()

        result = conversion_service.convert_points_to_toa("cust-1", 10)

        assert result.tokens_generated == 2
        assert db.get(TokenBalance, "cust-1").tokens == 102

    @pytest.mark.parametrize(
        "points,message",
        [
            (3, "Minimum conversion is 5 points"),
            (12, "Points must be a multiple of 5"),
        ],
    )
    def test_rejects_invalid_amount(
        self, technician_with_points, conversion_service, db, points, message
    ):
        with pytest.raises(ValidationError) as exc_info:
            conversion_service.convert_points_to_toa("tech-1", points)

        assert exc_info.value.message == message
        assert db.get(Technician, "tech-1").points == 27

    def test_insufficient_points(self, technician_with_points, conversion_service, db):
        """포인트 부족 시 상태 변화 없음 테스트"""
        with pytest.raises(InsufficientPointsError) as exc_info:
            conversion_service.convert_points_to_toa("tech-1", 30)

        assert exc_info.value.message == "Insufficient points"
        assert db.get(Technician, "tech-1").points == 27
        assert db.get(TokenBalance, "tech-1") is None
        assert db.query(PointsConversion).count() == 0

    def test_unknown_account(self, seed, conversion_service):
        with pytest.raises(NotFoundError):
            conversion_service.convert_points_to_toa("nobody", 5)

    def test_daily_conversion_cap(self, technician_with_points, db, settings, dispatcher):
        """일일 전환 횟수 제한 테스트"""
        now = datetime(2025, 3, 14, 15, 0, tzinfo=timezone.utc)
        catalog = RateCatalog(max_daily_conversions=2)
        today = ConversionService(db, settings, catalog, dispatcher, clock=lambda: now)
        tomorrow = ConversionService(
            db, settings, catalog, dispatcher, clock=lambda: now + timedelta(days=1)
        )

        today.convert_points_to_toa("tech-1", 5)
        today.convert_points_to_toa("tech-1", 5)
        with pytest.raises(DailyConversionLimitError):
            today.convert_points_to_toa("tech-1", 5)

        tomorrow.convert_points_to_toa("tech-1", 5)
        assert db.get(Technician, "tech-1").points == 12

    def test_notifies_account_owner(self, technician_with_points, conversion_service, dispatcher):
        conversion_service.convert_points_to_toa("tech-1", 10)

        events = dispatcher.dispatch_all.call_args[0][0]
        assert events[0].template_kind == NotificationKind.POINTS_CONVERTED
        assert events[0].parameters["tokens_generated"] == 2
        assert events[0].parameters["points_remaining"] == 17


class TestConversionQueries:
    def test_status(self, technician_with_points, conversion_service):
        status = conversion_service.get_conversion_status("tech-1")

        assert status.account_kind == "technician"
        assert status.available_points == 27
        assert status.convertible_points == 25
        assert status.can_convert_tokens == 5
        assert status.can_convert is True
        assert status.remaining_conversions_today == 20

    def test_status_below_minimum(self, seed, conversion_service):
        status = conversion_service.get_conversion_status("cust-1")
        assert status.available_points == 0
        assert status.can_convert is False

    def test_history(self, technician_with_points, conversion_service):
        conversion_service.convert_points_to_toa("tech-1", 10)
        conversion_service.convert_points_to_toa("tech-1", 5)

        history = conversion_service.get_conversion_history("auth-tech-1")

        assert len(history.conversions) == 2
        assert history.total_points_converted == 15
        assert history.total_tokens_generated == 3
