"""
포인트 전환 API 라우터

- GET /conversions/status: 전환 가능 여부
- POST /conversions: 포인트를 TOA 토큰으로 전환
- GET /conversions/history: 전환 기록
"""

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query, status

from thanksapi.containers import Container
from thanksapi.core.auth_middleware import CallerIdentity, get_current_identity
from thanksapi.schemas.conversion import (
    ConversionHistoryResponse,
    ConversionRequest,
    ConversionResult,
    ConversionStatus,
)
from thanksapi.services.conversion_service import ConversionService

router = APIRouter(prefix="/conversions", tags=["conversions"])


@router.get("/status", response_model=ConversionStatus)
@inject
async def get_conversion_status(
    identity: CallerIdentity = Depends(get_current_identity),
    conversion_service: ConversionService = Depends(
        Provide[Container.services.conversion_service]
    ),
) -> ConversionStatus:
    return conversion_service.get_conversion_status(identity.user_id)


@router.post("", response_model=ConversionResult, status_code=status.HTTP_201_CREATED)
@inject
async def convert_points(
    request: ConversionRequest,
    identity: CallerIdentity = Depends(get_current_identity),
    conversion_service: ConversionService = Depends(
        Provide[Container.services.conversion_service]
    ),
) -> ConversionResult:
    """
    포인트 전환

    HTTP Status:
        201: 전환 완료
        400: 포인트 부족
        404: 계정을 찾을 수 없음
        422: 최소 전환 미만이거나 비율의 배수가 아님
        429: 일일 전환 횟수 초과
    """
    return conversion_service.convert_points_to_toa(
        identity.user_id, request.points_to_convert
    )


@router.get("/history", response_model=ConversionHistoryResponse)
@inject
async def get_conversion_history(
    limit: int = Query(20, ge=1, le=100),
    identity: CallerIdentity = Depends(get_current_identity),
    conversion_service: ConversionService = Depends(
        Provide[Container.services.conversion_service]
    ),
) -> ConversionHistoryResponse:
    return conversion_service.get_conversion_history(identity.user_id, limit=limit)
