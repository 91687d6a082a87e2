import hmac
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy.orm import Session

from thanksapi.config import settings
from thanksapi.core.exceptions import AuthenticationError, AuthorizationError
from thanksapi.core.security import decode_access_token
from thanksapi.database.session import get_db
from thanksapi.repositories.profile_repository import ProfileRepository

# JWT Bearer 토큰 스킴
security = HTTPBearer(auto_error=False)


class CallerIdentity(BaseModel):
    """인증된 호출자 (토큰 subject = 외부 인증 ID 또는 프로필 ID)"""

    user_id: str


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CallerIdentity:
    """필수 사용자 인증 - 유효한 Bearer 토큰이 필요함"""
    if not credentials:
        raise AuthenticationError("Authentication required")
    return CallerIdentity(user_id=decode_access_token(credentials.credentials))


def require_admin(
    identity: CallerIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> CallerIdentity:
    """관리자 계정으로 해석되는 호출자만 허용"""
    if not ProfileRepository(db).is_admin(identity.user_id):
        raise AuthorizationError("Admin privileges required")
    return identity


def verify_webhook_secret(
    x_webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret"),
) -> None:
    """결제 처리사 웹훅 공유 비밀 검증"""
    expected = settings.PAYMENT_WEBHOOK_SECRET
    if not expected:
        raise AuthorizationError("Payment webhook is not configured")
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        raise AuthenticationError("Invalid webhook secret")
