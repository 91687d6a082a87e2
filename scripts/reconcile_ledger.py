"""
원장 정합성 점검/보정 배치

사용법:
    python -m scripts.reconcile_ledger            # 점검만 (dry run)
    python -m scripts.reconcile_ledger --apply    # 불일치 보정
    python -m scripts.reconcile_ledger --analyze  # 분석 요약만 출력
    python -m scripts.reconcile_ledger --export csv  # 거래 목록 내보내기
"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from thanksapi.config import settings
from thanksapi.core.catalog import RateCatalog
from thanksapi.database.session import get_db_context
from thanksapi.logging_config import setup_logging
from thanksapi.services.reconciliation_service import ReconciliationService

logger = logging.getLogger("thanksapi.scripts.reconcile_ledger")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile the appreciation ledger")
    parser.add_argument(
        "--apply", action="store_true", help="write corrections (default is dry run)"
    )
    parser.add_argument(
        "--skip-accounts",
        action="store_true",
        help="only check per-transaction fields",
    )
    parser.add_argument(
        "--analyze", action="store_true", help="print the read-only analysis and exit"
    )
    parser.add_argument(
        "--export",
        choices=["csv", "json"],
        help="print every transaction with its detected issues and exit",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    catalog = RateCatalog.from_settings(settings)

    with get_db_context() as db:
        service = ReconciliationService(db=db, settings=settings, catalog=catalog)

        if args.export:
            print(service.export_transactions(args.export))
            return 0

        if args.analyze:
            analysis = service.analyze()
            print(json.dumps(analysis.model_dump(mode="json"), indent=2))
            return 0 if analysis.status == "OK" else 1

        dry_run = not args.apply
        tx_report = service.reconcile_transactions(dry_run=dry_run)
        summary = {"transactions": tx_report.model_dump(mode="json")}
        if not args.skip_accounts:
            account_report = service.reconcile_account_points(
                dry_run=dry_run, run_id=tx_report.run_id
            )
            summary["accounts"] = account_report.model_dump(mode="json")
            totals_report = service.reconcile_technician_totals(
                dry_run=dry_run, run_id=tx_report.run_id
            )
            summary["technician_totals"] = totals_report.model_dump(mode="json")

    print(json.dumps(summary, indent=2))
    logger.info(f"Reconciliation run {tx_report.run_id} finished (dry_run={dry_run})")
    return 0


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    sys.exit(main())
