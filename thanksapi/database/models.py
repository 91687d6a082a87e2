"""모든 테이블 모델을 Base.metadata에 등록"""

from thanksapi.models.base import Base
from thanksapi.models import balance, conversion, correction, daily_limit, profile, transaction  # noqa: F401

__all__ = ["Base"]
