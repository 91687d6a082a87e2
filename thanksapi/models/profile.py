"""
계정 프로필 모델

같은 사람이 역할에 따라 여러 테이블(technicians, customers, admins)에
존재할 수 있습니다. 각 행은 기본 ID 외에 외부 인증 ID(auth_uid)를 가지며,
포인트 잔액은 프로필에 내장된 정수 필드입니다.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from thanksapi.models.base import BaseModel, VersionedMixin


class AccountKind(str, Enum):
    """계정 종류 (식별자 조회 순서와 동일)"""

    TECHNICIAN = "technician"
    CUSTOMER = "customer"
    ADMIN = "admin"


class AccountMixin(VersionedMixin):
    """모든 계정 테이블이 공유하는 컬럼"""

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    # 외부 인증 ID (기본 ID와 다를 수 있음)
    auth_uid: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_thank_yous_sent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tokens_sent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Technician(AccountMixin, BaseModel):
    __tablename__ = "technicians"

    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    business_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    total_thank_yous: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tokens_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_toa_value: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=Decimal("0"))
    total_earnings: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=Decimal("0"))


class Customer(AccountMixin, BaseModel):
    __tablename__ = "customers"


class Admin(AccountMixin, BaseModel):
    __tablename__ = "admins"


ACCOUNT_MODELS = {
    AccountKind.TECHNICIAN: Technician,
    AccountKind.CUSTOMER: Customer,
    AccountKind.ADMIN: Admin,
}
