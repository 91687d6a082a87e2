"""
원장 정합성 점검/보정 서비스

원장을 훑으며 카탈로그 공식으로 각 거래의 기대 포인트와 (유료 전송의)
기대 금액 필드를 다시 계산하고, 다른 값을 찾으면 보정합니다.
프로필 포인트와 기술자 누적 합계도 원장에서 재계산해 보정할 수 있습니다.
관리자용 읽기 전용 원장 조회와 CSV/JSON 내보내기도 제공합니다.

규칙:
- 새 비즈니스 이벤트(거래)를 만들지 않음
- 각 보정은 짧은 개별 트랜잭션의 조건부 UPDATE (관찰한 값이 그대로일 때만)
- 모든 보정은 ledger_corrections에 기록되고 WARNING 로그를 남김
- 조건이 맞지 않으면(그 사이 다른 쓰기 발생) 건너뛰고 다음 실행에 맡김
"""

import csv
import io
import json
import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from thanksapi.config import Settings
from thanksapi.core.catalog import RateCatalog
from thanksapi.core.exceptions import ValidationError
from thanksapi.core.retry import run_atomic
from thanksapi.models.profile import AccountKind
from thanksapi.models.transaction import TokenTransaction, TransactionType
from thanksapi.repositories.conversion_repository import ConversionRepository
from thanksapi.repositories.correction_repository import CorrectionRepository
from thanksapi.repositories.profile_repository import RESOLUTION_ORDER, ProfileRepository
from thanksapi.repositories.transaction_repository import TransactionRepository
from thanksapi.schemas.pagination import PaginationLimits, PaginationMeta
from thanksapi.schemas.reconciliation import (
    AuditedTransaction,
    AuditedTransactionPage,
    CorrectionEntry,
    LedgerAnalysis,
    PointsIssueSummary,
    ReconciliationReport,
    RevenueSummary,
    TransactionFilter,
)

logger = logging.getLogger(__name__)

MONETARY_FIELDS = ("dollar_value", "technician_payout", "platform_fee")
MONEY_QUANTUM = Decimal("0.0001")

EXPORT_FORMATS = ("csv", "json")
EXPORT_COLUMNS = (
    "id",
    "type",
    "from_user_id",
    "to_technician_id",
    "from_name",
    "to_name",
    "tokens",
    "points_awarded",
    "sender_points_awarded",
    "dollar_value",
    "technician_payout",
    "platform_fee",
    "timestamp",
    "message",
)


@dataclass
class PlannedPatch:
    entity_type: str
    entity_id: str
    field: str
    observed: Any
    expected: Any
    reason: str


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    return str(value)


class ReconciliationService:
    """원장 감사 및 드리프트 보정"""

    def __init__(self, db: Session, settings: Settings, catalog: RateCatalog):
        self.db = db
        self.settings = settings
        self.catalog = catalog
        self.transactions = TransactionRepository(db)
        self.corrections = CorrectionRepository(db)
        self.profiles = ProfileRepository(db)
        self.conversions = ConversionRepository(db)

    # ------------------------------------------------------------------
    # 거래 단위 점검
    # ------------------------------------------------------------------

    def _transaction_patches(self, tx: TokenTransaction) -> List[PlannedPatch]:
        """한 거래에 대해 필요한 보정 목록 (카탈로그 공식 기준)"""
        patches: List[PlannedPatch] = []
        try:
            tx_type = TransactionType(tx.type)
        except ValueError:
            logger.error(f"Transaction {tx.id} has unknown type {tx.type!r}; skipped")
            return patches

        recipient_points, sender_points = self.catalog.expected_points(tx_type)
        if tx.points_awarded != recipient_points:
            patches.append(
                PlannedPatch(
                    "transaction", tx.id, "points_awarded", tx.points_awarded, recipient_points,
                    f"points_awarded for {tx_type.value} must be {recipient_points}",
                )
            )
        # 발신자 몫이 없는 유형은 비어 있어도 일치로 본다
        if (tx.sender_points_awarded or 0) != sender_points:
            patches.append(
                PlannedPatch(
                    "transaction", tx.id, "sender_points_awarded", tx.sender_points_awarded, sender_points,
                    f"sender_points_awarded for {tx_type.value} must be {sender_points}",
                )
            )

        if tx_type == TransactionType.TOA_TOKEN:
            split = self.catalog.split_payment(tx.tokens)
            for field in MONETARY_FIELDS:
                observed = getattr(tx, field)
                expected = getattr(split, field)
                if observed is None or Decimal(observed) != expected:
                    reason = (
                        f"missing {field} backfilled from catalog rate"
                        if observed is None
                        else f"{field} diverges from catalog rate"
                    )
                    patches.append(
                        PlannedPatch("transaction", tx.id, field, observed, expected, reason)
                    )
        return patches

    def analyze(self) -> LedgerAnalysis:
        """원장 분석 (읽기 전용)

        Returns:
            LedgerAnalysis: 유형별 건수, 포인트/금액 이상 건수, 매출 합계
        """
        by_type: Counter = Counter()
        points_issues = PointsIssueSummary()
        revenue = RevenueSummary()
        monetary_issues = 0
        total = 0

        for tx in self.transactions.iter_all():
            total += 1
            by_type[tx.type] += 1
            patches = self._transaction_patches(tx)
            fields = {p.field: p for p in patches}

            point_patch = fields.get("points_awarded") or fields.get("sender_points_awarded")
            if point_patch is not None:
                if point_patch.observed is None:
                    points_issues.missing += 1
                elif point_patch.observed == 0:
                    points_issues.zero += 1
                else:
                    points_issues.inconsistent += 1

            if any(f in fields for f in MONETARY_FIELDS):
                monetary_issues += 1

            if tx.type == TransactionType.TOA_TOKEN.value:
                revenue.total_dollar_value += Decimal(tx.dollar_value or 0)
                revenue.total_technician_payout += Decimal(tx.technician_payout or 0)
                revenue.total_platform_fee += Decimal(tx.platform_fee or 0)

        has_issues = (
            points_issues.missing + points_issues.zero + points_issues.inconsistent + monetary_issues
        ) > 0
        analysis = LedgerAnalysis(
            status="MISMATCH" if has_issues else "OK",
            total_transactions=total,
            by_type=dict(by_type),
            points_issues=points_issues,
            monetary_issues=monetary_issues,
            revenue=revenue,
            analyzed_at=datetime.now(timezone.utc),
        )
        logger.info(
            f"Ledger analysis: {total} transactions, status {analysis.status}, "
            f"points issues {points_issues.model_dump()}, monetary issues {monetary_issues}"
        )
        return analysis

    def _apply(self, run_id: str, patch: PlannedPatch, apply_write) -> Optional[CorrectionEntry]:
        """조건부 쓰기 + 보정 기록을 하나의 짧은 트랜잭션으로 실행"""

        def work() -> Optional[CorrectionEntry]:
            if not apply_write():
                return None
            return self.corrections.log(
                run_id=run_id,
                entity_type=patch.entity_type,
                entity_id=patch.entity_id,
                field=patch.field,
                old_value=_as_text(patch.observed),
                new_value=_as_text(patch.expected) or "",
                reason=patch.reason,
            )

        return run_atomic(
            self.db,
            work,
            operation="reconcile_patch",
            max_attempts=self.settings.TRANSACTION_MAX_ATTEMPTS,
            base_delay=self.settings.TRANSACTION_RETRY_BASE_DELAY,
        )

    def _preview(self, run_id: str, patch: PlannedPatch) -> CorrectionEntry:
        return CorrectionEntry(
            run_id=run_id,
            entity_type=patch.entity_type,
            entity_id=patch.entity_id,
            field=patch.field,
            old_value=_as_text(patch.observed),
            new_value=_as_text(patch.expected) or "",
            reason=patch.reason,
        )

    def reconcile_transactions(
        self, dry_run: bool = True, run_id: Optional[str] = None
    ) -> ReconciliationReport:
        """거래별 포인트/금액 필드 보정

        Args:
            dry_run: True면 보정 없이 불일치 목록만 반환
            run_id: 보정 기록을 묶는 실행 ID (없으면 생성)

        Returns:
            ReconciliationReport: 점검/보정 건수와 보정 목록
        """
        run_id = run_id or uuid.uuid4().hex
        report = ReconciliationReport(run_id=run_id, dry_run=dry_run)

        planned: List[PlannedPatch] = []
        for tx in self.transactions.iter_all():
            report.scanned += 1
            tx_patches = self._transaction_patches(tx)
            if tx_patches:
                report.mismatched += 1
                planned.extend(tx_patches)
        # 스캔이 연 읽기 트랜잭션 종료
        self.db.rollback()

        for patch in planned:
            if dry_run:
                report.corrections.append(self._preview(run_id, patch))
                continue

            entry = self._apply(
                run_id,
                patch,
                lambda p=patch: self.transactions.patch_field(
                    p.entity_id, p.field, p.observed, p.expected
                ),
            )
            if entry is None:
                report.skipped_concurrent += 1
                logger.info(
                    f"[{run_id}] transaction {patch.entity_id}.{patch.field} changed since scan; skipped"
                )
                continue
            report.corrected += 1
            report.corrections.append(entry)
            logger.warning(
                f"[{run_id}] corrected transaction {patch.entity_id}.{patch.field}: "
                f"{entry.old_value} -> {entry.new_value} ({patch.reason})"
            )

        if not dry_run:
            self.db.expire_all()
        logger.info(
            f"Transaction reconciliation {run_id} (dry_run={dry_run}): scanned {report.scanned}, "
            f"mismatched {report.mismatched}, corrected {report.corrected}, "
            f"skipped {report.skipped_concurrent}"
        )
        return report

    # ------------------------------------------------------------------
    # 계정 포인트 점검
    # ------------------------------------------------------------------

    def expected_account_points(self, identities: List[str]) -> int:
        """받은 포인트 + 보내며 얻은 포인트 - 전환한 포인트"""
        received = self.transactions.sum_points_received(identities)
        earned_as_sender = self.transactions.sum_points_earned_as_sender(identities)
        converted = self.conversions.sum_points_converted(identities)
        return int(received) + int(earned_as_sender) - int(converted)

    def reconcile_account_points(
        self, dry_run: bool = True, run_id: Optional[str] = None
    ) -> ReconciliationReport:
        """프로필 포인트를 원장 기준으로 재계산하여 보정"""
        run_id = run_id or uuid.uuid4().hex
        report = ReconciliationReport(run_id=run_id, dry_run=dry_run)

        planned: List[PlannedPatch] = []
        for kind in RESOLUTION_ORDER:
            for account in self.profiles.list_accounts(kind):
                report.scanned += 1
                owner = self.profiles.resolve(account.id)
                if owner is None or owner.kind != kind:
                    # 같은 ID가 조회 순서상 앞선 테이블에 있으면 그 계정이 원장의 주인
                    logger.debug(f"{kind.value} {account.id} is shadowed by {owner.kind.value if owner else '?'}; skipped")
                    continue

                expected = self.expected_account_points(owner.identities)
                if expected == account.points:
                    continue
                report.mismatched += 1
                if expected < 0:
                    logger.error(
                        f"[{run_id}] {kind.value} {account.id}: ledger implies negative points ({expected}); not patched"
                    )
                    continue
                planned.append(
                    PlannedPatch(
                        kind.value, account.id, "points", account.points, expected,
                        f"points recomputed from ledger ({expected})",
                    )
                )
        self.db.rollback()

        self._apply_profile_patches(run_id, planned, report)
        logger.info(
            f"Account reconciliation {run_id} (dry_run={dry_run}): scanned {report.scanned}, "
            f"mismatched {report.mismatched}, corrected {report.corrected}, "
            f"skipped {report.skipped_concurrent}"
        )
        return report

    def _apply_profile_patches(
        self, run_id: str, planned: List[PlannedPatch], report: ReconciliationReport
    ) -> None:
        for patch in planned:
            if report.dry_run:
                report.corrections.append(self._preview(run_id, patch))
                continue

            kind = next(k for k in RESOLUTION_ORDER if k.value == patch.entity_type)
            entry = self._apply(
                run_id,
                patch,
                lambda p=patch, k=kind: self.profiles.patch_field(
                    k, p.entity_id, p.field, p.observed, p.expected
                ),
            )
            if entry is None:
                report.skipped_concurrent += 1
                logger.info(
                    f"[{run_id}] {patch.entity_type} {patch.entity_id}.{patch.field} changed since scan; skipped"
                )
                continue
            report.corrected += 1
            report.corrections.append(entry)
            logger.warning(
                f"[{run_id}] corrected {patch.entity_type} {patch.entity_id}.{patch.field}: "
                f"{entry.old_value} -> {entry.new_value}"
            )

        if not report.dry_run:
            self.db.expire_all()

    # ------------------------------------------------------------------
    # 기술자 누적 합계 점검
    # ------------------------------------------------------------------

    def reconcile_technician_totals(
        self, dry_run: bool = True, run_id: Optional[str] = None
    ) -> ReconciliationReport:
        """기술자 프로필의 누적 합계를 원장에서 재계산하여 보정

        total_tokens_received, total_toa_value, total_earnings는 받은 유료 전송의
        합, total_thank_yous는 받은 무료 감사와 유료 전송 건수입니다.
        금액 합계는 거래의 금액 필드를 쓰므로 reconcile_transactions 이후에 실행합니다.
        """
        run_id = run_id or uuid.uuid4().hex
        report = ReconciliationReport(run_id=run_id, dry_run=dry_run)

        planned: List[PlannedPatch] = []
        for technician in self.profiles.list_accounts(AccountKind.TECHNICIAN):
            report.scanned += 1
            identities = [technician.id]
            if technician.auth_uid and technician.auth_uid != technician.id:
                identities.append(technician.auth_uid)

            tokens, toa_value, earnings, thank_yous = self.transactions.technician_totals(
                identities
            )
            expected = {
                "total_tokens_received": tokens,
                "total_toa_value": toa_value.quantize(MONEY_QUANTUM),
                "total_earnings": earnings.quantize(MONEY_QUANTUM),
                "total_thank_yous": thank_yous,
            }
            patches = []
            for field, value in expected.items():
                observed = getattr(technician, field)
                if isinstance(value, Decimal):
                    matches = observed is not None and Decimal(observed).quantize(MONEY_QUANTUM) == value
                else:
                    matches = observed == value
                if not matches:
                    patches.append(
                        PlannedPatch(
                            AccountKind.TECHNICIAN.value, technician.id, field, observed, value,
                            f"{field} recomputed from ledger",
                        )
                    )
            if patches:
                report.mismatched += 1
                planned.extend(patches)
        self.db.rollback()

        self._apply_profile_patches(run_id, planned, report)
        logger.info(
            f"Technician totals reconciliation {run_id} (dry_run={dry_run}): "
            f"scanned {report.scanned}, mismatched {report.mismatched}, "
            f"corrected {report.corrected}, skipped {report.skipped_concurrent}"
        )
        return report

    def list_corrections(self, run_id: Optional[str] = None, limit: int = 100) -> List[CorrectionEntry]:
        return self.corrections.list_recent(run_id=run_id, limit=limit)

    # ------------------------------------------------------------------
    # 원장 조회 / 내보내기 (읽기 전용)
    # ------------------------------------------------------------------

    def _describe(self, patch: PlannedPatch) -> str:
        if patch.observed is None:
            return f"Missing {patch.field}"
        return (
            f"Incorrect {patch.field}: has {_as_text(patch.observed)}, "
            f"expected {_as_text(patch.expected)}"
        )

    def _audited(self, filters: TransactionFilter) -> List[AuditedTransaction]:
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError(
                "start_date must not be after end_date",
                details={"start_date": str(filters.start_date), "end_date": str(filters.end_date)},
            )

        rows: List[AuditedTransaction] = []
        for tx in self.transactions.find_filtered(filters):
            issues = [self._describe(p) for p in self._transaction_patches(tx)]
            if filters.has_issues is not None and bool(issues) != filters.has_issues:
                continue
            row = AuditedTransaction.model_validate(tx, from_attributes=True)
            row.issues = issues
            row.has_issues = bool(issues)
            rows.append(row)
        return rows

    def list_transactions(
        self, filters: Optional[TransactionFilter] = None, limit: int = 100, offset: int = 0
    ) -> AuditedTransactionPage:
        """필터에 맞는 거래를 이상 항목과 함께 조회 (최신순)

        Args:
            filters: 유형, 발신자, 기술자, 날짜 범위, 토큰 범위, 이상 여부
            limit: 페이지 크기
            offset: 오프셋

        Returns:
            AuditedTransactionPage: 거래 목록과 페이지 정보
        """
        limit = min(limit, PaginationLimits.AUDIT_TRANSACTIONS["max"])
        rows = self._audited(filters or TransactionFilter())
        page = rows[offset:offset + limit]
        return AuditedTransactionPage(
            transactions=page,
            meta=PaginationMeta(
                limit=limit,
                offset=offset,
                total_count=len(rows),
                has_next=offset + limit < len(rows),
            ),
        )

    def export_transactions(
        self, fmt: str = "csv", filters: Optional[TransactionFilter] = None
    ) -> str:
        """필터에 맞는 거래 전체를 CSV 또는 JSON 문자열로 내보내기"""
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(
                f"Unsupported export format: {fmt}", details={"supported": list(EXPORT_FORMATS)}
            )
        rows = self._audited(filters or TransactionFilter())
        logger.info(f"Exporting {len(rows)} transactions as {fmt}")

        if fmt == "json":
            return json.dumps([row.model_dump(mode="json") for row in rows], indent=2)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(EXPORT_COLUMNS + ("issues",))
        for row in rows:
            values = row.model_dump(mode="json")
            writer.writerow(
                [values[column] if values[column] is not None else "" for column in EXPORT_COLUMNS]
                + ["; ".join(row.issues)]
            )
        return buffer.getvalue()
