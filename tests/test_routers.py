from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from thanksapi.core.auth_middleware import CallerIdentity, require_admin
from thanksapi.core.exceptions import AlreadyThankedTodayError, InsufficientBalanceError
from thanksapi.core.security import create_access_token
from thanksapi.database.session import get_db
from thanksapi.deps import get_reconciliation_service
from thanksapi.main import create_app
from thanksapi.repositories.profile_repository import ProfileRepository
from thanksapi.schemas.appreciation import AppreciationResult, RateLimitStatus
from thanksapi.schemas.conversion import ConversionResult
from thanksapi.schemas.pagination import PaginationMeta
from thanksapi.schemas.reconciliation import (
    AuditedTransaction,
    AuditedTransactionPage,
    LedgerAnalysis,
    PointsIssueSummary,
    ReconciliationReport,
    RevenueSummary,
    TransactionFilter,
)
from thanksapi.schemas.tokens import PurchaseResult, TokenBalanceResponse

API = "/api/v1"


@pytest.fixture
def app():
    """서비스를 모의 객체로 교체한 앱 픽스처"""
    app = create_app()
    mocks = {
        "appreciation_service": Mock(),
        "purchase_service": Mock(),
        "conversion_service": Mock(),
    }
    for name, mock in mocks.items():
        getattr(app.container.services, name).override(providers.Object(mock))
    app.state.mocks = mocks
    yield app
    for name in mocks:
        getattr(app.container.services, name).reset_override()
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token('auth-cust-1')}"}


class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get(f"{API}/tokens/balance")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_001"

    def test_invalid_token(self, client):
        response = client.get(
            f"{API}/tokens/balance", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401


class TestAppreciationRoutes:
    """감사 라우터 테스트"""

    def test_send_thank_you(self, app, client, auth_headers):
        service = app.state.mocks["appreciation_service"]
        service.send_free_thank_you.return_value = AppreciationResult(
            success=True,
            transaction_id="tx-1",
            type="thank_you",
            points_awarded=1,
            message="Thanks!",
        )

        response = client.post(
            f"{API}/appreciation/thank-you",
            json={"recipient_id": "tech-1"},
            headers=auth_headers,
        )

        assert response.status_code == 201
        assert response.json()["transaction_id"] == "tx-1"
        service.send_free_thank_you.assert_called_once_with(
            sender_id="auth-cust-1", recipient_id="tech-1"
        )

    def test_already_thanked_maps_to_429(self, app, client, auth_headers):
        service = app.state.mocks["appreciation_service"]
        service.send_free_thank_you.side_effect = AlreadyThankedTodayError()

        response = client.post(
            f"{API}/appreciation/thank-you",
            json={"recipient_id": "tech-1"},
            headers=auth_headers,
        )

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "86400"
        assert response.json()["error"]["message"] == "Daily limit reached for this technician"

    def test_send_tokens_insufficient_balance(self, app, client, auth_headers):
        service = app.state.mocks["appreciation_service"]
        service.send_tokens.side_effect = InsufficientBalanceError()

        response = client.post(
            f"{API}/appreciation/tokens",
            json={"recipient_id": "tech-1", "token_count": 10},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Insufficient token balance"

    def test_send_tokens_rejects_bad_payload(self, client, auth_headers):
        response = client.post(
            f"{API}/appreciation/tokens",
            json={"recipient_id": "tech-1", "token_count": 0},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_limit_status(self, app, client, auth_headers):
        service = app.state.mocks["appreciation_service"]
        service.get_limit_status.return_value = RateLimitStatus(
            sender_id="cust-1",
            recipient_id="tech-1",
            limit_date=date(2025, 3, 14),
            can_send_free=True,
            already_thanked=False,
            thanked_today_count=0,
            remaining_today=50,
        )

        response = client.get(f"{API}/appreciation/limits/tech-1", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["can_send_free"] is True


class TestTokenRoutes:
    """토큰 라우터 테스트"""

    def test_balance(self, app, client, auth_headers):
        service = app.state.mocks["purchase_service"]
        service.get_balance.return_value = TokenBalanceResponse(
            user_id="cust-1", tokens=100, total_purchased=100, total_spent=0
        )

        response = client.get(f"{API}/tokens/balance", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["tokens"] == 100
        service.get_balance.assert_called_once_with("auth-cust-1")

    def test_purchase_requires_webhook_secret(self, client):
        response = client.post(
            f"{API}/tokens/purchases",
            json={
                "user_id": "cust-1",
                "token_count": 100,
                "purchase_amount": "1.99",
                "external_reference": "pi_1",
            },
            headers={"X-Webhook-Secret": "wrong"},
        )
        assert response.status_code == 401

    @pytest.mark.parametrize("applied,expected_status", [(True, 201), (False, 200)])
    def test_purchase_status_reflects_duplicate(self, app, client, applied, expected_status):
        """새 결제는 201, 중복 결제는 200 테스트"""
        service = app.state.mocks["purchase_service"]
        service.add_tokens_to_balance.return_value = PurchaseResult(
            applied=applied,
            duplicate=not applied,
            transaction_id="tx-9",
            tokens=100,
            new_token_balance=200,
            message="ok",
        )

        response = client.post(
            f"{API}/tokens/purchases",
            json={
                "user_id": "cust-1",
                "token_count": 100,
                "purchase_amount": "1.99",
                "external_reference": "pi_1",
                "pack_id": "starter",
            },
            headers={"X-Webhook-Secret": "test-webhook-secret"},
        )

        assert response.status_code == expected_status
        kwargs = service.add_tokens_to_balance.call_args.kwargs
        assert kwargs["purchase_amount"] == Decimal("1.99")
        assert kwargs["pack_id"] == "starter"


class TestConversionRoutes:
    def test_convert(self, app, client, auth_headers):
        service = app.state.mocks["conversion_service"]
        service.convert_points_to_toa.return_value = ConversionResult(
            success=True,
            conversion_id="conv-1",
            points_converted=25,
            tokens_generated=5,
            new_points_balance=2,
            new_token_balance=5,
            message="Converted 25 points to 5 TOA tokens",
        )

        response = client.post(
            f"{API}/conversions", json={"points_to_convert": 25}, headers=auth_headers
        )

        assert response.status_code == 201
        assert response.json()["tokens_generated"] == 5
        service.convert_points_to_toa.assert_called_once_with("auth-cust-1", 25)


class TestAdminRoutes:
    """관리자 라우터 테스트"""

    def test_requires_admin(self, app, client, auth_headers):
        db = Mock()
        app.dependency_overrides[get_db] = lambda: db
        with patch.object(ProfileRepository, "is_admin", return_value=False):
            response = client.get(f"{API}/admin/ledger/analysis", headers=auth_headers)

        assert response.status_code == 403

    def test_reconcile_dry_run(self, app, client, auth_headers):
        service = Mock()
        service.reconcile_transactions.return_value = ReconciliationReport(
            run_id="run-1", dry_run=True, scanned=4, mismatched=1
        )
        service.reconcile_account_points.return_value = ReconciliationReport(
            run_id="run-1", dry_run=True, scanned=3
        )
        service.reconcile_technician_totals.return_value = ReconciliationReport(
            run_id="run-1", dry_run=True, scanned=2
        )
        app.dependency_overrides[require_admin] = lambda: CallerIdentity(user_id="admin-1")
        app.dependency_overrides[get_reconciliation_service] = lambda: service

        response = client.post(
            f"{API}/admin/ledger/reconcile", json={}, headers=auth_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["transactions"]["mismatched"] == 1
        assert body["accounts"]["scanned"] == 3
        assert body["technician_totals"]["scanned"] == 2
        service.reconcile_transactions.assert_called_once_with(dry_run=True)
        service.reconcile_account_points.assert_called_once_with(dry_run=True, run_id="run-1")
        service.reconcile_technician_totals.assert_called_once_with(dry_run=True, run_id="run-1")

    def test_analysis(self, app, client, auth_headers):
        service = Mock()
        service.analyze.return_value = LedgerAnalysis(
            status="OK",
            total_transactions=0,
            by_type={},
            points_issues=PointsIssueSummary(),
            monetary_issues=0,
            revenue=RevenueSummary(),
            analyzed_at=datetime(2025, 3, 14, tzinfo=timezone.utc),
        )
        app.dependency_overrides[require_admin] = lambda: CallerIdentity(user_id="admin-1")
        app.dependency_overrides[get_reconciliation_service] = lambda: service

        response = client.get(f"{API}/admin/ledger/analysis", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "OK"

    def test_list_transactions_passes_filters(self, app, client, auth_headers):
        service = Mock()
        service.list_transactions.return_value = AuditedTransactionPage(
            transactions=[
                AuditedTransaction(
                    id="tx-1",
                    type="thank_you",
                    from_user_id="cust-1",
                    to_technician_id="tech-1",
                    from_name="Maria Lopez",
                    to_name="Alex Rivera",
                    tokens=0,
                    message="thanks",
                    timestamp=datetime(2025, 3, 14, 15, 0, tzinfo=timezone.utc),
                    activity_date=date(2025, 3, 14),
                    points_awarded=0,
                    has_issues=True,
                    issues=["Incorrect points_awarded: has 0, expected 1"],
                )
            ],
            meta=PaginationMeta(limit=50, offset=0, total_count=1, has_next=False),
        )
        app.dependency_overrides[require_admin] = lambda: CallerIdentity(user_id="admin-1")
        app.dependency_overrides[get_reconciliation_service] = lambda: service

        response = client.get(
            f"{API}/admin/ledger/transactions",
            params={"technician_id": "tech-1", "has_issues": "true", "limit": 50},
            headers=auth_headers,
        )

        assert response.status_code == 200
        row = response.json()["transactions"][0]
        assert row["has_issues"] is True
        assert row["issues"] == ["Incorrect points_awarded: has 0, expected 1"]
        service.list_transactions.assert_called_once_with(
            TransactionFilter(technician_id="tech-1", has_issues=True), limit=50, offset=0
        )

    def test_export_csv(self, app, client, auth_headers):
        service = Mock()
        service.export_transactions.return_value = "id,type\ntx-1,thank_you\n"
        app.dependency_overrides[require_admin] = lambda: CallerIdentity(user_id="admin-1")
        app.dependency_overrides[get_reconciliation_service] = lambda: service

        response = client.get(
            f"{API}/admin/ledger/export",
            params={"format": "csv", "start_date": "2025-03-01"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="ledger-transactions.csv"' in response.headers["content-disposition"]
        assert response.text == "id,type\ntx-1,thank_you\n"
        service.export_transactions.assert_called_once_with(
            "csv", TransactionFilter(start_date=date(2025, 3, 1))
        )

    def test_export_json(self, app, client, auth_headers):
        service = Mock()
        service.export_transactions.return_value = "[]"
        app.dependency_overrides[require_admin] = lambda: CallerIdentity(user_id="admin-1")
        app.dependency_overrides[get_reconciliation_service] = lambda: service

        response = client.get(
            f"{API}/admin/ledger/export", params={"format": "json"}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert response.json() == []

    def test_export_rejects_unknown_format(self, app, client, auth_headers):
        service = Mock()
        app.dependency_overrides[require_admin] = lambda: CallerIdentity(user_id="admin-1")
        app.dependency_overrides[get_reconciliation_service] = lambda: service

        response = client.get(
            f"{API}/admin/ledger/export", params={"format": "xml"}, headers=auth_headers
        )

        assert response.status_code == 422
        service.export_transactions.assert_not_called()


class TestHealth:
    def test_health(self, app, client):
        app.dependency_overrides[get_db] = lambda: Mock()

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers
