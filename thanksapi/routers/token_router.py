"""
토큰 API 라우터

- GET /tokens/balance: 내 토큰 잔액
- GET /tokens/packs: 구매 가능한 토큰 팩
- POST /tokens/purchases: 결제 완료 웹훅 (X-Webhook-Secret 필요)
"""

import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Response, status

from thanksapi.containers import Container
from thanksapi.core.auth_middleware import (
    CallerIdentity,
    get_current_identity,
    verify_webhook_secret,
)
from thanksapi.schemas.tokens import (
    PurchaseRequest,
    PurchaseResult,
    TokenBalanceResponse,
    TokenPackListResponse,
)
from thanksapi.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tokens", tags=["tokens"])


@router.get("/balance", response_model=TokenBalanceResponse)
@inject
async def get_my_balance(
    identity: CallerIdentity = Depends(get_current_identity),
    purchase_service: PurchaseService = Depends(
        Provide[Container.services.purchase_service]
    ),
) -> TokenBalanceResponse:
    """내 토큰 잔액 조회 (잔액 행이 없으면 0으로 생성)"""
    return purchase_service.get_balance(identity.user_id)


@router.get("/packs", response_model=TokenPackListResponse)
@inject
async def list_token_packs(
    purchase_service: PurchaseService = Depends(
        Provide[Container.services.purchase_service]
    ),
) -> TokenPackListResponse:
    """토큰 팩 목록 (인증 불필요)"""
    return purchase_service.list_packs()


@router.post(
    "/purchases",
    response_model=PurchaseResult,
    dependencies=[Depends(verify_webhook_secret)],
)
@inject
async def record_purchase(
    request: PurchaseRequest,
    response: Response,
    purchase_service: PurchaseService = Depends(
        Provide[Container.services.purchase_service]
    ),
) -> PurchaseResult:
    """
    결제 완료 반영 - 결제 처리사가 호출

    같은 external_reference로 재전송되면 잔액은 그대로 두고
    duplicate=true 결과를 200으로 돌려줍니다.

    HTTP Status:
        201: 새 결제 반영
        200: 이미 처리된 결제
        401: 웹훅 비밀 불일치
        422: 잘못된 구매 정보
    """
    result = purchase_service.add_tokens_to_balance(
        user_id=request.user_id,
        token_count=request.token_count,
        purchase_amount=request.purchase_amount,
        external_reference=request.external_reference,
        pack_id=request.pack_id,
    )
    response.status_code = (
        status.HTTP_201_CREATED if result.applied else status.HTTP_200_OK
    )
    return result
