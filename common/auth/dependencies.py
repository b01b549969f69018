"""
FastAPI authentication dependencies for Zenly Platform Service

This module provides reusable dependencies for bearer token authentication
and role checks.
"""

from typing import Optional, Annotated

from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from common.logger import get_logger
from common.exceptions import AuthenticationError, AuthorizationError, ZenlyException
from common.database import get_database
from .models import CurrentUser, UserRole
from .service import UserService
from .tokens import decode_access_token

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_user_service(db=Depends(get_database)) -> UserService:
    return UserService(db)


def _to_current_user(claims: dict) -> CurrentUser:
    try:
        return CurrentUser(id=claims["id"], role=claims.get("role", UserRole.USER.value))
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid token")


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> CurrentUser:
    """
    Require a valid access token.

    An expired token is reported with ``code: TOKEN_EXPIRED`` so clients
    know to refresh and retry.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("No token provided")

    user = _to_current_user(decode_access_token(credentials.credentials))
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> Optional[CurrentUser]:
    """Attach the user when a valid token is present, otherwise stay anonymous"""
    if credentials is None:
        return None
    try:
        user = _to_current_user(decode_access_token(credentials.credentials))
    except ZenlyException:
        return None
    request.state.user = user
    return user


def require_role(*roles: UserRole):
    """
    Create a dependency that requires one of the given roles

    Usage:
        @router.get("/users", dependencies=[Depends(require_role(UserRole.ADMIN))])
    """
    async def role_checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            logger.warning(
                f"Insufficient permissions for user {user.id}",
                extra={"user_id": user.id, "role": user.role.value, "required_roles": [r.value for r in roles]}
            )
            raise AuthorizationError()
        return user

    return role_checker


# Type annotations for cleaner function signatures
AuthenticatedUser = Annotated[CurrentUser, Depends(get_current_user)]
OptionalUser = Annotated[Optional[CurrentUser], Depends(get_optional_user)]
AdminUser = Annotated[CurrentUser, Depends(require_role(UserRole.ADMIN))]
