from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from thanksapi.config import Settings, settings as default_settings
from thanksapi.core.exceptions import AuthenticationError


def create_access_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
    app_settings: Optional[Settings] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """subject(외부 인증 ID 또는 프로필 ID)로 액세스 토큰 발급"""
    app_settings = app_settings or default_settings
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=app_settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode: Dict[str, Any] = {"sub": subject, "exp": expire}
    if extra_claims:
        to_encode.update(extra_claims)
    return jwt.encode(
        to_encode, app_settings.SECRET_KEY, algorithm=app_settings.JWT_ALGORITHM
    )


def decode_access_token(token: str, app_settings: Optional[Settings] = None) -> str:
    """JWT 토큰을 검증하고 subject를 반환합니다."""
    app_settings = app_settings or default_settings
    try:
        payload = jwt.decode(
            token, app_settings.SECRET_KEY, algorithms=[app_settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise AuthenticationError("Invalid authentication credentials")

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Token has no subject")
    return str(subject)
