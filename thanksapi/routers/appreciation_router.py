"""
감사 API 라우터

사용자용 엔드포인트:
- POST /appreciation/thank-you: 무료 감사 (기술자당 하루 1회)
- POST /appreciation/tokens: 유료 TOA 토큰 전송
- GET /appreciation/limits/{recipient_id}: 오늘 무료 감사 가능 여부
- GET /appreciation/history: 보낸/받은 거래 내역

인증 및 권한:
- 모든 엔드포인트는 Bearer 토큰 인증 필요 (토큰 subject = 발신자)
"""

import logging

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path, Query, status

from thanksapi.containers import Container
from thanksapi.core.auth_middleware import CallerIdentity, get_current_identity
from thanksapi.schemas.appreciation import (
    AppreciationResult,
    RateLimitStatus,
    SendTokensRequest,
    ThankYouRequest,
    TransactionHistoryResponse,
)
from thanksapi.services.appreciation_service import AppreciationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appreciation", tags=["appreciation"])


@router.post(
    "/thank-you",
    response_model=AppreciationResult,
    status_code=status.HTTP_201_CREATED,
)
@inject
async def send_free_thank_you(
    request: ThankYouRequest,
    identity: CallerIdentity = Depends(get_current_identity),
    appreciation_service: AppreciationService = Depends(
        Provide[Container.services.appreciation_service]
    ),
) -> AppreciationResult:
    """
    무료 감사 보내기

    인증 필요: Bearer 토큰

    Returns:
        AppreciationResult: 생성된 thank_you 거래 (수신자 포인트 1)

    HTTP Status:
        201: 감사 기록됨
        400: 자기 자신에게 감사
        404: 기술자를 찾을 수 없음
        429: 오늘 이미 이 기술자에게 감사했거나 일일 한도 소진
        409: 동시 요청 충돌로 재시도 필요
    """
    return appreciation_service.send_free_thank_you(
        sender_id=identity.user_id, recipient_id=request.recipient_id
    )


@router.post(
    "/tokens",
    response_model=AppreciationResult,
    status_code=status.HTTP_201_CREATED,
)
@inject
async def send_tokens(
    request: SendTokensRequest,
    identity: CallerIdentity = Depends(get_current_identity),
    appreciation_service: AppreciationService = Depends(
        Provide[Container.services.appreciation_service]
    ),
) -> AppreciationResult:
    """
    TOA 토큰 전송 - 발신자 잔액에서 차감하고 기술자에게 적립

    HTTP Status:
        201: 전송 완료
        400: 잔액 부족 또는 자기 자신에게 전송
        404: 기술자를 찾을 수 없음
        422: 허용 범위를 벗어난 토큰 수
    """
    return appreciation_service.send_tokens(
        sender_id=identity.user_id,
        recipient_id=request.recipient_id,
        token_count=request.token_count,
    )


@router.get("/limits/{recipient_id}", response_model=RateLimitStatus)
@inject
async def get_limit_status(
    recipient_id: str = Path(..., description="기술자 ID 또는 인증 ID"),
    identity: CallerIdentity = Depends(get_current_identity),
    appreciation_service: AppreciationService = Depends(
        Provide[Container.services.appreciation_service]
    ),
) -> RateLimitStatus:
    """오늘 이 기술자에게 무료 감사를 보낼 수 있는지 조회"""
    return appreciation_service.get_limit_status(identity.user_id, recipient_id)


@router.get("/history", response_model=TransactionHistoryResponse)
@inject
async def get_history(
    limit: int = Query(50, ge=1, le=100, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    identity: CallerIdentity = Depends(get_current_identity),
    appreciation_service: AppreciationService = Depends(
        Provide[Container.services.appreciation_service]
    ),
) -> TransactionHistoryResponse:
    """
    보낸/받은 거래 내역 (최신순)

    사용 예시:
        GET /appreciation/history?limit=20&offset=0
    """
    return appreciation_service.get_history(
        identity.user_id, limit=limit, offset=offset
    )
