"""
Admin Router

관리자 전용 원장 점검 API
- 원장 분석, 거래 조회, 내보내기 (읽기 전용)
- 거래/계정 포인트 정합성 보정
- 보정 기록 조회
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from thanksapi.core.auth_middleware import CallerIdentity, require_admin
from thanksapi.deps import get_reconciliation_service
from thanksapi.schemas.reconciliation import (
    AuditedTransactionPage,
    CorrectionEntry,
    LedgerAnalysis,
    ReconcileRequest,
    ReconcileResponse,
    TransactionFilter,
)
from thanksapi.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/ledger", tags=["admin"])


@router.get("/analysis", response_model=LedgerAnalysis)
def analyze_ledger(
    admin: CallerIdentity = Depends(require_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> LedgerAnalysis:
    """원장 분석 - 유형별 건수, 포인트/금액 이상, 매출 합계"""
    return service.analyze()


@router.post("/reconcile", response_model=ReconcileResponse)
def reconcile_ledger(
    request: ReconcileRequest,
    admin: CallerIdentity = Depends(require_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> ReconcileResponse:
    """
    정합성 보정 실행

    dry_run=true(기본)면 불일치 목록만 반환하고 아무것도 쓰지 않습니다.
    """
    logger.info(
        f"Ledger reconcile requested by {admin.user_id} "
        f"(dry_run={request.dry_run}, include_accounts={request.include_accounts})"
    )
    transactions = service.reconcile_transactions(dry_run=request.dry_run)
    accounts = None
    totals = None
    if request.include_accounts:
        accounts = service.reconcile_account_points(
            dry_run=request.dry_run, run_id=transactions.run_id
        )
        totals = service.reconcile_technician_totals(
            dry_run=request.dry_run, run_id=transactions.run_id
        )
    return ReconcileResponse(
        transactions=transactions, accounts=accounts, technician_totals=totals
    )


@router.get("/corrections", response_model=List[CorrectionEntry])
def list_corrections(
    run_id: Optional[str] = Query(None, description="실행 ID로 필터"),
    limit: int = Query(100, ge=1, le=500),
    admin: CallerIdentity = Depends(require_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> List[CorrectionEntry]:
    return service.list_corrections(run_id=run_id, limit=limit)


def transaction_filter(
    type: Optional[str] = Query(None, description="거래 유형"),
    user_id: Optional[str] = Query(None, description="발신자 ID"),
    technician_id: Optional[str] = Query(None, description="수신 기술자 ID"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    min_tokens: Optional[int] = Query(None, ge=0),
    max_tokens: Optional[int] = Query(None, ge=0),
    has_issues: Optional[bool] = Query(None, description="이상 항목 유무"),
) -> TransactionFilter:
    return TransactionFilter(
        type=type,
        user_id=user_id,
        technician_id=technician_id,
        start_date=start_date,
        end_date=end_date,
        min_tokens=min_tokens,
        max_tokens=max_tokens,
        has_issues=has_issues,
    )


@router.get("/transactions", response_model=AuditedTransactionPage)
def list_ledger_transactions(
    filters: TransactionFilter = Depends(transaction_filter),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: CallerIdentity = Depends(require_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> AuditedTransactionPage:
    """원장 거래 조회 - 거래별 이상 항목 포함 (읽기 전용)"""
    return service.list_transactions(filters, limit=limit, offset=offset)


@router.get("/export")
def export_ledger(
    fmt: str = Query("csv", alias="format", pattern="^(csv|json)$"),
    filters: TransactionFilter = Depends(transaction_filter),
    admin: CallerIdentity = Depends(require_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> Response:
    """원장 거래 내보내기 (CSV 또는 JSON 첨부 파일)"""
    content = service.export_transactions(fmt, filters)
    logger.info(f"Ledger export ({fmt}) requested by {admin.user_id}")
    return Response(
        content=content,
        media_type="text/csv" if fmt == "csv" else "application/json",
        headers={"Content-Disposition": f'attachment; filename="ledger-transactions.{fmt}"'},
    )
