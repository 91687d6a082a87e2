import csv
import io
import json
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from thanksapi.core.exceptions import ValidationError
from thanksapi.models.correction import LedgerCorrection
from thanksapi.models.profile import Customer, Technician
from thanksapi.models.transaction import TokenTransaction
from thanksapi.schemas.reconciliation import TransactionFilter

NOW = datetime(2025, 3, 14, 15, 0, tzinfo=timezone.utc)


def _tx(tx_id, tx_type, tokens=0, **fields):
    return TokenTransaction(
        id=tx_id,
        from_user_id=fields.pop("from_user_id", "cust-1"),
        to_technician_id=fields.pop("to_technician_id", "tech-1"),
        from_name="Maria Lopez",
        to_name="Alex Rivera",
        tokens=tokens,
        message="legacy row",
        type=tx_type,
        timestamp=NOW,
        activity_date=date(2025, 3, 14),
        **fields,
    )


@pytest.fixture
def drifted_ledger(seed, db):
    """포인트 누락/오류와 금액 누락이 섞인 원장"""
    db.add_all(
        [
            # 무료 감사인데 포인트 0
            _tx("tx-thanks-zero", "thank_you", points_awarded=0, sender_points_awarded=0),
            # 포인트 필드 자체가 없음
            _tx("tx-thanks-missing", "thank_you", to_technician_id="tech-2"),
            # 유료 전송: 금액 필드 누락, 발신자 포인트 오류
            _tx(
                "tx-toa-drift",
                "toa_token",
                tokens=10,
                dollar_value=Decimal("0.10"),
                technician_payout=None,
                platform_fee=None,
                points_awarded=2,
                sender_points_awarded=3,
            ),
            # 정상 유료 전송
            _tx(
                "tx-toa-ok",
                "toa_token",
                tokens=5,
                dollar_value=Decimal("0.05"),
                technician_payout=Decimal("0.0425"),
                platform_fee=Decimal("0.0075"),
                points_awarded=2,
                sender_points_awarded=1,
            ),
        ]
    )
    db.commit()
    return db


class TestAnalyze:
    """원장 분석 테스트"""

    def test_clean_ledger_is_ok(self, seed, reconciliation_service):
        analysis = reconciliation_service.analyze()

        assert analysis.status == "OK"
        assert analysis.total_transactions == 0

    def test_reports_issues(self, drifted_ledger, reconciliation_service):
        analysis = reconciliation_service.analyze()

        assert analysis.status == "MISMATCH"
        assert analysis.total_transactions == 4
        assert analysis.by_type == {"thank_you": 2, "toa_token": 2}
        assert analysis.points_issues.zero == 1
        assert analysis.points_issues.missing == 1
        assert analysis.points_issues.inconsistent == 1
        assert analysis.monetary_issues == 1
        assert analysis.revenue.total_dollar_value == Decimal("0.15")


class TestReconcileTransactions:
    """거래 단위 보정 테스트"""

    def test_dry_run_writes_nothing(self, drifted_ledger, reconciliation_service, db):
        report = reconciliation_service.reconcile_transactions(dry_run=True)

        assert report.dry_run is True
        assert report.scanned == 4
        assert report.mismatched == 3
        assert report.corrected == 0
        assert len(report.corrections) == 5
        assert db.query(LedgerCorrection).count() == 0
        assert db.get(TokenTransaction, "tx-thanks-zero").points_awarded == 0

    def test_apply_corrects_and_logs(self, drifted_ledger, reconciliation_service, db):
        """보정 적용 및 보정 기록 테스트"""
        report = reconciliation_service.reconcile_transactions(dry_run=False, run_id="run-1")

        assert report.corrected == 5
        assert report.skipped_concurrent == 0

        assert db.get(TokenTransaction, "tx-thanks-zero").points_awarded == 1
        assert db.get(TokenTransaction, "tx-thanks-missing").points_awarded == 1
        toa = db.get(TokenTransaction, "tx-toa-drift")
        assert toa.sender_points_awarded == 1
        assert Decimal(toa.technician_payout) == Decimal("0.085")
        assert Decimal(toa.platform_fee) == Decimal("0.015")

        corrections = reconciliation_service.list_corrections(run_id="run-1")
        assert len(corrections) == 5
        assert {c.field for c in corrections} == {
            "points_awarded",
            "sender_points_awarded",
            "technician_payout",
            "platform_fee",
        }
        zero_fix = next(c for c in corrections if c.entity_id == "tx-thanks-zero")
        assert zero_fix.old_value == "0"
        assert zero_fix.new_value == "1"

    def test_second_run_is_noop(self, drifted_ledger, reconciliation_service):
        reconciliation_service.reconcile_transactions(dry_run=False)

        report = reconciliation_service.reconcile_transactions(dry_run=False)

        assert report.mismatched == 0
        assert report.corrected == 0
        assert reconciliation_service.analyze().status == "OK"

    def test_does_not_create_business_events(self, drifted_ledger, reconciliation_service, db):
        reconciliation_service.reconcile_transactions(dry_run=False)
        assert db.query(TokenTransaction).count() == 4


class TestReconcileAccountPoints:
    """계정 포인트 재계산 테스트"""

    def test_recomputes_from_ledger(self, drifted_ledger, reconciliation_service, db):
        reconciliation_service.reconcile_transactions(dry_run=False)

        report = reconciliation_service.reconcile_account_points(dry_run=False)

        # tech-1: 무료 감사 1 + 유료 2 + 유료 2
        assert db.get(Technician, "tech-1").points == 5
        assert db.get(Technician, "tech-2").points == 1
        # cust-1: 유료 전송 두 건의 발신자 몫
        assert db.get(Customer, "cust-1").points == 2
        assert report.corrected == 3

    def test_matching_accounts_are_untouched(self, seed, appreciation_service, reconciliation_service):
        appreciation_service.send_free_thank_you("cust-1", "tech-1")
        appreciation_service.send_tokens("cust-1", "tech-1", 5)

        report = reconciliation_service.reconcile_account_points(dry_run=False)

        assert report.mismatched == 0
        assert report.corrected == 0

    def test_conversions_are_subtracted(self, seed, appreciation_service, conversion_service, reconciliation_service):
        appreciation_service.send_tokens("cust-1", "tech-1", 5)
        appreciation_service.send_tokens("cust-1", "tech-1", 5)
        appreciation_service.send_tokens("cust-1", "tech-1", 5)
        conversion_service.convert_points_to_toa("tech-1", 5)

        assert reconciliation_service.expected_account_points(["tech-1", "auth-tech-1"]) == 1
        report = reconciliation_service.reconcile_account_points(dry_run=True)
        assert report.mismatched == 0


class TestReconcileTechnicianTotals:
    """기술자 누적 합계 재계산 테스트"""

    def test_recomputes_totals_from_ledger(self, drifted_ledger, reconciliation_service, db):
        reconciliation_service.reconcile_transactions(dry_run=False)

        report = reconciliation_service.reconcile_technician_totals(dry_run=False, run_id="run-t")

        assert report.scanned == 2
        assert report.mismatched == 2
        assert report.corrected == 5
        assert report.skipped_concurrent == 0

        tech = db.get(Technician, "tech-1")
        assert tech.total_tokens_received == 15
        assert Decimal(tech.total_toa_value) == Decimal("0.15")
        # 0.085 + 0.0425
        assert Decimal(tech.total_earnings) == Decimal("0.1275")
        assert tech.total_thank_yous == 3
        assert db.get(Technician, "tech-2").total_thank_yous == 1

        corrections = reconciliation_service.list_corrections(run_id="run-t")
        assert {(c.entity_id, c.field) for c in corrections} == {
            ("tech-1", "total_tokens_received"),
            ("tech-1", "total_toa_value"),
            ("tech-1", "total_earnings"),
            ("tech-1", "total_thank_yous"),
            ("tech-2", "total_thank_yous"),
        }
        earnings_fix = next(c for c in corrections if c.field == "total_earnings")
        assert earnings_fix.old_value == "0"
        assert earnings_fix.new_value == "0.1275"

    def test_dry_run_writes_nothing(self, drifted_ledger, reconciliation_service, db):
        report = reconciliation_service.reconcile_technician_totals(dry_run=True)

        assert report.mismatched == 2
        assert report.corrected == 0
        assert len(report.corrections) == 5
        assert db.query(LedgerCorrection).count() == 0
        assert db.get(Technician, "tech-1").total_tokens_received == 0

    def test_live_traffic_totals_match(self, seed, appreciation_service, reconciliation_service):
        appreciation_service.send_free_thank_you("cust-1", "tech-1")
        appreciation_service.send_tokens("cust-1", "tech-1", 5)
        appreciation_service.send_tokens("cust-1", "tech-2", 10)

        report = reconciliation_service.reconcile_technician_totals(dry_run=False)

        assert report.mismatched == 0
        assert report.corrected == 0


class TestListTransactions:
    """관리자 원장 조회 테스트"""

    def test_rows_carry_issues(self, drifted_ledger, reconciliation_service):
        page = reconciliation_service.list_transactions()

        assert page.meta.total_count == 4
        rows = {row.id: row for row in page.transactions}
        assert rows["tx-toa-ok"].has_issues is False
        assert rows["tx-toa-ok"].issues == []
        assert rows["tx-thanks-zero"].issues == ["Incorrect points_awarded: has 0, expected 1"]
        assert rows["tx-thanks-missing"].issues == ["Missing points_awarded"]
        assert rows["tx-toa-drift"].issues == [
            "Incorrect sender_points_awarded: has 3, expected 1",
            "Missing technician_payout",
            "Missing platform_fee",
        ]

    def test_has_issues_filter(self, drifted_ledger, reconciliation_service):
        flagged = reconciliation_service.list_transactions(TransactionFilter(has_issues=True))
        clean = reconciliation_service.list_transactions(TransactionFilter(has_issues=False))

        assert {row.id for row in flagged.transactions} == {
            "tx-thanks-zero",
            "tx-thanks-missing",
            "tx-toa-drift",
        }
        assert [row.id for row in clean.transactions] == ["tx-toa-ok"]

    @pytest.mark.parametrize(
        "filters, expected",
        [
            (TransactionFilter(technician_id="tech-2"), {"tx-thanks-missing"}),
            (TransactionFilter(type="toa_token"), {"tx-toa-drift", "tx-toa-ok"}),
            (TransactionFilter(min_tokens=6), {"tx-toa-drift"}),
            (TransactionFilter(max_tokens=0), {"tx-thanks-zero", "tx-thanks-missing"}),
            (TransactionFilter(user_id="someone-else"), set()),
            (TransactionFilter(start_date=date(2025, 3, 15)), set()),
            (
                TransactionFilter(start_date=date(2025, 3, 14), end_date=date(2025, 3, 14)),
                {"tx-thanks-zero", "tx-thanks-missing", "tx-toa-drift", "tx-toa-ok"},
            ),
        ],
    )
    def test_column_filters(self, drifted_ledger, reconciliation_service, filters, expected):
        page = reconciliation_service.list_transactions(filters)

        assert {row.id for row in page.transactions} == expected

    def test_pagination(self, drifted_ledger, reconciliation_service):
        first = reconciliation_service.list_transactions(limit=3)
        second = reconciliation_service.list_transactions(limit=3, offset=3)

        assert len(first.transactions) == 3
        assert first.meta.has_next is True
        assert len(second.transactions) == 1
        assert second.meta.has_next is False
        ids = [row.id for row in first.transactions + second.transactions]
        assert sorted(ids) == sorted(
            ["tx-thanks-zero", "tx-thanks-missing", "tx-toa-drift", "tx-toa-ok"]
        )

    def test_inverted_date_range_rejected(self, drifted_ledger, reconciliation_service):
        filters = TransactionFilter(start_date=date(2025, 3, 15), end_date=date(2025, 3, 14))

        with pytest.raises(ValidationError):
            reconciliation_service.list_transactions(filters)

    def test_listing_is_read_only(self, drifted_ledger, reconciliation_service, db):
        reconciliation_service.list_transactions()

        assert db.get(TokenTransaction, "tx-thanks-zero").points_awarded == 0
        assert db.query(LedgerCorrection).count() == 0


class TestExportTransactions:
    """원장 내보내기 테스트"""

    def test_csv_export(self, drifted_ledger, reconciliation_service):
        content = reconciliation_service.export_transactions("csv")

        rows = list(csv.DictReader(io.StringIO(content)))
        assert len(rows) == 4
        assert list(rows[0].keys())[:3] == ["id", "type", "from_user_id"]
        assert list(rows[0].keys())[-1] == "issues"
        by_id = {row["id"]: row for row in rows}
        assert by_id["tx-toa-drift"]["tokens"] == "10"
        assert by_id["tx-toa-drift"]["technician_payout"] == ""
        assert by_id["tx-toa-drift"]["issues"] == (
            "Incorrect sender_points_awarded: has 3, expected 1; "
            "Missing technician_payout; Missing platform_fee"
        )
        assert by_id["tx-toa-ok"]["issues"] == ""

    def test_json_export_with_filter(self, drifted_ledger, reconciliation_service):
        content = reconciliation_service.export_transactions(
            "json", TransactionFilter(has_issues=True, type="thank_you")
        )

        rows = json.loads(content)
        assert {row["id"] for row in rows} == {"tx-thanks-zero", "tx-thanks-missing"}
        assert all(row["has_issues"] for row in rows)

    def test_empty_ledger_exports_header_only(self, seed, reconciliation_service):
        content = reconciliation_service.export_transactions("csv")

        assert content.strip().split(",")[0] == "id"
        assert len(content.strip().splitlines()) == 1

    def test_unsupported_format(self, seed, reconciliation_service):
        with pytest.raises(ValidationError):
            reconciliation_service.export_transactions("xml")
