import os

# 모듈 수준 settings가 만들어지기 전에 테스트 환경 값을 지정
os.environ.setdefault("DATABASE_URL", "sqlite:///./.pytest_thanksapi.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret")

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import Mock

import pytest

from thanksapi.config import Settings
from thanksapi.core.catalog import RateCatalog
from thanksapi.database.connection import build_engine, build_session_factory
from thanksapi.database.models import Base
from thanksapi.models.balance import TokenBalance
from thanksapi.models.profile import Admin, Customer, Technician
from thanksapi.services.appreciation_service import AppreciationService
from thanksapi.services.conversion_service import ConversionService
from thanksapi.services.notification_service import NotificationDispatcher
from thanksapi.services.purchase_service import PurchaseService
from thanksapi.services.reconciliation_service import ReconciliationService

FIXED_NOW = datetime(2025, 3, 14, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'ledger.db'}",
        TRANSACTION_RETRY_BASE_DELAY=0.001,
        NOTIFICATION_QUEUE_URL=None,
        TIMEZONE="UTC",
    )


@pytest.fixture
def engine(settings):
    engine = build_engine(settings)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def catalog():
    return RateCatalog()


@pytest.fixture
def dispatcher():
    return Mock(spec=NotificationDispatcher)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def appreciation_service(db, settings, catalog, dispatcher, clock):
    return AppreciationService(db, settings, catalog, dispatcher=dispatcher, clock=clock)


@pytest.fixture
def purchase_service(db, settings, catalog, dispatcher, clock):
    return PurchaseService(db, settings, catalog, dispatcher=dispatcher, clock=clock)


@pytest.fixture
def conversion_service(db, settings, catalog, dispatcher, clock):
    return ConversionService(db, settings, catalog, dispatcher=dispatcher, clock=clock)


@pytest.fixture
def reconciliation_service(db, settings, catalog):
    return ReconciliationService(db, settings, catalog)


@pytest.fixture
def seed(db):
    """기본 계정: 기술자 2명, 고객 1명(토큰 100), 관리자 1명"""
    db.add_all(
        [
            Technician(
                id="tech-1",
                auth_uid="auth-tech-1",
                name="Alex Rivera",
                email="alex@example.com",
                total_toa_value=Decimal("0"),
                total_earnings=Decimal("0"),
            ),
            Technician(
                id="tech-2",
                auth_uid="auth-tech-2",
                name="Sam Okafor",
                email="",
                total_toa_value=Decimal("0"),
                total_earnings=Decimal("0"),
            ),
            Customer(
                id="cust-1",
                auth_uid="auth-cust-1",
                name="Maria Lopez",
                email="maria@example.com",
            ),
            Admin(id="admin-1", auth_uid="auth-admin-1", name="Ops Admin"),
            TokenBalance(user_id="cust-1", tokens=100, total_purchased=100, total_spent=0),
        ]
    )
    db.commit()
    return db
