"""
JWT credential pair for Zenly Platform Service

Access tokens are short lived and sent on every authenticated request;
refresh tokens live for days and are only accepted by ``POST /auth/refresh``.
Both carry ``{id, role}`` and are signed with separate secrets.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Any

import jwt

from common.config import get_settings
from common.exceptions import AuthenticationError, TokenExpiredError

settings = get_settings()


def _encode(user_id: str, role: str, secret: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: str, role: str) -> str:
    return _encode(
        user_id, role,
        settings.JWT_ACCESS_SECRET,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )


def create_refresh_token(user_id: str, role: str) -> str:
    return _encode(
        user_id, role,
        settings.JWT_REFRESH_SECRET,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    )


def create_token_pair(user_id: str, role: str) -> Dict[str, str]:
    return {
        "accessToken": create_access_token(user_id, role),
        "refreshToken": create_refresh_token(user_id, role),
    }


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify an access token.

    Raises:
        TokenExpiredError: the signature is fine but ``exp`` has passed
        AuthenticationError: anything else wrong with the token
    """
    try:
        return jwt.decode(token, settings.JWT_ACCESS_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """Verify a refresh token. Any failure is reported as one 401."""
    try:
        return jwt.decode(token, settings.JWT_REFRESH_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid refresh token")
