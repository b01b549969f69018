"""
Authentication module for Zenly Platform Service
"""

from .models import (
    UserRole,
    CurrentUser,
    PublicUser,
    SignupRequest,
    LoginRequest,
    RefreshRequest,
    AdminElevateRequest,
    ProfileUpdate,
    AvatarUpdate,
    PasswordChange
)
from .service import UserService
from .tokens import (
    create_access_token,
    create_refresh_token,
    create_token_pair,
    decode_access_token,
    decode_refresh_token
)
from .dependencies import (
    get_current_user,
    get_optional_user,
    get_user_service,
    require_role,
    AuthenticatedUser,
    OptionalUser,
    AdminUser
)

__all__ = [
    # Models
    "UserRole",
    "CurrentUser",
    "PublicUser",
    "SignupRequest",
    "LoginRequest",
    "RefreshRequest",
    "AdminElevateRequest",
    "ProfileUpdate",
    "AvatarUpdate",
    "PasswordChange",

    # Service
    "UserService",

    # Tokens
    "create_access_token",
    "create_refresh_token",
    "create_token_pair",
    "decode_access_token",
    "decode_refresh_token",

    # Dependencies
    "get_current_user",
    "get_optional_user",
    "get_user_service",
    "require_role",
    "AuthenticatedUser",
    "OptionalUser",
    "AdminUser"
]
