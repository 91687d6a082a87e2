from datetime import date, datetime
from typing import List

from pydantic import BaseModel, Field


class ConversionRequest(BaseModel):
    """포인트 전환 요청"""

    points_to_convert: int = Field(..., gt=0, description="전환할 포인트")


class ConversionResult(BaseModel):
    """포인트 전환 결과"""

    success: bool = Field(..., description="성공 여부")
    conversion_id: str
    points_converted: int
    tokens_generated: int = Field(..., description="생성된 토큰 수")
    new_points_balance: int = Field(..., description="전환 후 포인트")
    new_token_balance: int = Field(..., description="전환 후 토큰 잔액")
    message: str


class ConversionStatus(BaseModel):
    """전환 가능 여부 요약"""

    user_id: str
    account_kind: str
    available_points: int
    convertible_points: int = Field(..., description="전환 가능한 최대 포인트 (비율의 배수)")
    can_convert_tokens: int = Field(..., description="지금 전환 시 받을 수 있는 토큰")
    can_convert: bool
    conversions_today: int
    remaining_conversions_today: int
    conversion_rate: int = Field(..., description="토큰 1개당 포인트")
    minimum_conversion: int


class ConversionRecord(BaseModel):
    """전환 기록"""

    id: str
    user_id: str
    account_kind: str
    points_converted: int
    tokens_generated: int
    conversion_rate: int
    conversion_date: date
    converted_at: datetime

    class Config:
        from_attributes = True


class ConversionHistoryResponse(BaseModel):
    conversions: List[ConversionRecord]
    total_points_converted: int
    total_tokens_generated: int
