"""
통화 및 요율 카탈로그

토큰 팩 가격, 토큰당 정산 요율, 포인트 적립 규칙, 전환 비율, 일일 제한 등
원장 전체가 공유하는 정적 설정 값입니다.

카탈로그는 불변(frozen) 값 객체로, 서비스 생성 시 명시적으로 주입됩니다.
테스트에서는 다른 요율의 카탈로그를 만들어 주입할 수 있습니다.
"""

from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from thanksapi.config import Settings
from thanksapi.models.transaction import TransactionType


class TokenPack(BaseModel):
    """구매 가능한 토큰 팩"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="팩 식별자")
    tokens: int = Field(..., gt=0, description="지급 토큰 수")
    price_cents: int = Field(..., ge=0, description="가격 (센트)")
    label: str = Field(..., description="표시 이름")
    popular: bool = Field(False, description="추천 팩 여부")

    @property
    def price(self) -> Decimal:
        return Decimal(self.price_cents) / Decimal(100)


DEFAULT_TOKEN_PACKS: Tuple[TokenPack, ...] = (
    TokenPack(id="starter", tokens=100, price_cents=199, label="Starter Pack"),
    TokenPack(id="popular", tokens=500, price_cents=499, label="Popular Pack", popular=True),
    TokenPack(id="value", tokens=1000, price_cents=999, label="Value Pack"),
    TokenPack(id="bulk", tokens=2500, price_cents=1999, label="Bulk Pack"),
    TokenPack(id="premium", tokens=7500, price_cents=4999, label="Premium Pack"),
)


class PaymentSplit(BaseModel):
    """유료 전송의 금액 분배 결과"""

    model_config = ConfigDict(frozen=True)

    dollar_value: Decimal
    technician_payout: Decimal
    platform_fee: Decimal


class RateCatalog(BaseModel):
    """원장 전체의 요율과 제한 값"""

    model_config = ConfigDict(frozen=True)

    token_packs: Tuple[TokenPack, ...] = DEFAULT_TOKEN_PACKS

    customer_pays_per_token: Decimal = Decimal("0.01")
    technician_gets_per_token: Decimal = Decimal("0.0085")
    platform_fee_per_token: Decimal = Decimal("0.0015")

    points_per_thank_you: int = Field(1, ge=0)
    toa_recipient_points: int = Field(2, ge=0)
    toa_sender_points: int = Field(1, ge=0)

    points_per_token: int = Field(5, gt=0)
    minimum_conversion_points: int = Field(5, gt=0)
    max_daily_conversions: int = Field(20, gt=0)

    max_daily_thanks: int = Field(50, gt=0)
    min_tokens_per_send: int = Field(5, gt=0)
    max_tokens_per_send: int = Field(50, gt=0)

    @model_validator(mode="after")
    def _check_consistency(self) -> "RateCatalog":
        if (
            self.customer_pays_per_token
            != self.technician_gets_per_token + self.platform_fee_per_token
        ):
            raise ValueError(
                "customer_pays_per_token must equal technician_gets_per_token + platform_fee_per_token"
            )
        if self.minimum_conversion_points % self.points_per_token != 0:
            raise ValueError(
                "minimum_conversion_points must be a multiple of points_per_token"
            )
        if self.min_tokens_per_send > self.max_tokens_per_send:
            raise ValueError("min_tokens_per_send must not exceed max_tokens_per_send")
        if self.toa_recipient_points < self.toa_sender_points:
            raise ValueError("recipient share must not be smaller than sender share")
        return self

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateCatalog":
        """환경 설정으로부터 카탈로그 생성"""
        return cls(
            customer_pays_per_token=Decimal(settings.CUSTOMER_PAYS_PER_TOKEN),
            technician_gets_per_token=Decimal(settings.TECHNICIAN_GETS_PER_TOKEN),
            platform_fee_per_token=Decimal(settings.PLATFORM_FEE_PER_TOKEN),
            points_per_thank_you=settings.POINTS_PER_THANK_YOU,
            toa_recipient_points=settings.TOA_RECIPIENT_POINTS,
            toa_sender_points=settings.TOA_SENDER_POINTS,
            points_per_token=settings.POINTS_PER_TOKEN,
            minimum_conversion_points=settings.MINIMUM_CONVERSION_POINTS,
            max_daily_conversions=settings.MAX_DAILY_CONVERSIONS,
            max_daily_thanks=settings.MAX_DAILY_THANKS,
            min_tokens_per_send=settings.MIN_TOKENS_PER_SEND,
            max_tokens_per_send=settings.MAX_TOKENS_PER_SEND,
        )

    def split_payment(self, token_count: int) -> PaymentSplit:
        """토큰 수에 대한 금액 분배 계산

        플랫폼 수수료는 결제 금액에서 기술자 지급액을 뺀 값으로 구하므로
        세 값의 합은 항상 정확히 일치합니다.

        Args:
            token_count: 전송 토큰 수

        Returns:
            PaymentSplit: 결제 금액, 기술자 지급액, 플랫폼 수수료
        """
        count = Decimal(token_count)
        dollar_value = count * self.customer_pays_per_token
        technician_payout = count * self.technician_gets_per_token
        return PaymentSplit(
            dollar_value=dollar_value,
            technician_payout=technician_payout,
            platform_fee=dollar_value - technician_payout,
        )

    def expected_points(self, tx_type: TransactionType) -> Tuple[int, int]:
        """거래 유형별 (수신자, 발신자) 적립 포인트

        유료 전송은 토큰 수와 무관하게 거래당 고정 포인트를 적립합니다.
        """
        if tx_type == TransactionType.THANK_YOU:
            return self.points_per_thank_you, 0
        if tx_type == TransactionType.TOA_TOKEN:
            return self.toa_recipient_points, self.toa_sender_points
        return 0, 0

    def tokens_for_points(self, points: int) -> int:
        return points // self.points_per_token

    def is_valid_send_amount(self, token_count: int) -> bool:
        return self.min_tokens_per_send <= token_count <= self.max_tokens_per_send

    def get_pack(self, pack_id: str) -> Optional[TokenPack]:
        for pack in self.token_packs:
            if pack.id == pack_id:
                return pack
        return None

    def list_packs(self) -> List[TokenPack]:
        return list(self.token_packs)
