"""
User account service for Zenly Platform Service

Signup, login, token refresh, profile updates, password changes and the
admin elevation flow, all backed by the ``users`` collection.
"""

import hmac
import re
from datetime import datetime
from typing import Optional, List, Dict, Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from common.config import get_settings
from common.logger import get_logger
from common.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError
)
from common.database import to_object_id, serialize_document
from .models import (
    SignupRequest,
    LoginRequest,
    ProfileUpdate,
    PasswordChange,
    PublicUser,
    UserRole
)
from .passwords import hash_password, verify_password
from .tokens import create_token_pair, create_access_token, decode_refresh_token

settings = get_settings()
logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SIGNUP_MIN_PASSWORD_LENGTH = 8
PROFILE_FIELDS = ("name", "avatarUrl", "university", "firstName", "lastName", "academicYear")


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """The user summary sent alongside a credential pair"""
    return PublicUser(
        id=str(user["_id"]),
        email=user["email"],
        name=user.get("name", ""),
        role=user.get("role", UserRole.USER.value),
        emailVerified=user.get("emailVerified", False)
    ).model_dump(mode="json", exclude_none=True)


def user_profile(user: Dict[str, Any]) -> Dict[str, Any]:
    """Full user document without the password hash"""
    doc = {k: v for k, v in user.items() if k != "passwordHash"}
    return serialize_document(doc)


def validate_signup(payload: SignupRequest) -> List[str]:
    errors = []
    if not payload.email or not payload.email.strip():
        errors.append("Email is required")
    elif not EMAIL_PATTERN.match(payload.email.strip()):
        errors.append("Invalid email format")

    if not payload.password or len(payload.password) < SIGNUP_MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {SIGNUP_MIN_PASSWORD_LENGTH} characters")

    if not payload.name or not payload.name.strip():
        errors.append("Name is required")
    return errors


def validate_login(payload: LoginRequest) -> List[str]:
    errors = []
    if not payload.email or not payload.email.strip():
        errors.append("Email is required")
    if not payload.password:
        errors.append("Password is required")
    return errors


class UserService:
    """User account operations"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db.users

    async def _get(self, user_id: str, projection: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
        user = await self.collection.find_one({"_id": to_object_id(user_id)}, projection)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    def _session_payload(self, user: Dict[str, Any]) -> Dict[str, Any]:
        tokens = create_token_pair(str(user["_id"]), user.get("role", UserRole.USER.value))
        return {**tokens, "user": public_user(user)}

    async def signup(self, payload: SignupRequest) -> Dict[str, Any]:
        """
        Create an account and return a credential pair.

        Email verification is not part of this service, so the account is
        usable immediately.
        """
        errors = validate_signup(payload)
        if errors:
            raise ValidationError(errors=errors)

        email = payload.email.strip().lower()
        if await self.collection.find_one({"email": email}, {"_id": 1}):
            raise ConflictError("An account with this email already exists")

        now = datetime.utcnow()
        user = {
            "email": email,
            "passwordHash": await hash_password(payload.password),
            "name": payload.name.strip(),
            "role": UserRole.USER.value,
            "emailVerified": False,
            "isAnonymous": False,
            "lastActive": now,
            "createdAt": now,
            "updatedAt": now,
        }
        for field in ("firstName", "lastName", "university", "academicYear"):
            value = getattr(payload, field)
            if value is not None:
                user[field] = value.strip()

        try:
            result = await self.collection.insert_one(user)
        except DuplicateKeyError:
            raise ConflictError("An account with this email already exists")
        user["_id"] = result.inserted_id

        logger.info(f"User signed up: {user['_id']}")
        return self._session_payload(user)

    async def login(self, payload: LoginRequest) -> Dict[str, Any]:
        errors = validate_login(payload)
        if errors:
            raise ValidationError(errors=errors)

        user = await self.collection.find_one({"email": payload.email.strip().lower()})
        if not user or not await verify_password(payload.password, user.get("passwordHash", "")):
            logger.warning("Failed login attempt", extra={"email_domain": payload.email.split("@")[-1]})
            raise AuthenticationError("Invalid credentials")

        await self.collection.update_one({"_id": user["_id"]}, {"$set": {"lastActive": datetime.utcnow()}})
        logger.info(f"User logged in: {user['_id']}")
        return self._session_payload(user)

    async def refresh(self, refresh_token: Optional[str]) -> Dict[str, str]:
        """Issue a new access token; the refresh token itself is not rotated."""
        if not refresh_token:
            raise AuthenticationError("Invalid refresh token")
        claims = decode_refresh_token(refresh_token)
        return {"accessToken": create_access_token(claims["id"], claims.get("role", UserRole.USER.value))}

    async def get_profile(self, user_id: str) -> Dict[str, Any]:
        return user_profile(await self._get(user_id, {"passwordHash": 0}))

    async def update_profile(self, user_id: str, payload: ProfileUpdate) -> Dict[str, Any]:
        changes = payload.model_dump(exclude_unset=True)
        update = {field: changes[field] for field in PROFILE_FIELDS if field in changes}
        update["updatedAt"] = datetime.utcnow()

        user = await self.collection.find_one_and_update(
            {"_id": to_object_id(user_id)},
            {"$set": update},
            projection={"passwordHash": 0},
            return_document=ReturnDocument.AFTER
        )
        if not user:
            raise NotFoundError("User", user_id)
        return user_profile(user)

    async def update_avatar(self, user_id: str, avatar_url: Optional[str]) -> Dict[str, Any]:
        user = await self.collection.find_one_and_update(
            {"_id": to_object_id(user_id)},
            {"$set": {"avatarUrl": avatar_url, "updatedAt": datetime.utcnow()}},
            projection={"passwordHash": 0},
            return_document=ReturnDocument.AFTER
        )
        if not user:
            raise NotFoundError("User", user_id)
        return user_profile(user)

    async def change_password(self, user_id: str, payload: PasswordChange):
        if not payload.currentPassword or not payload.newPassword:
            raise ValidationError("Current password and new password are required")
        if len(payload.newPassword) < settings.MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"New password must be at least {settings.MIN_PASSWORD_LENGTH} characters long"
            )

        user = await self._get(user_id)
        if not await verify_password(payload.currentPassword, user.get("passwordHash", "")):
            raise AuthenticationError("Current password is incorrect")

        await self.collection.update_one(
            {"_id": user["_id"]},
            {"$set": {"passwordHash": await hash_password(payload.newPassword), "updatedAt": datetime.utcnow()}}
        )
        logger.info(f"Password changed for user {user_id}")

    async def admin_elevate(self, user_id: str, password: Optional[str]) -> Dict[str, Any]:
        """Grant the admin role when the shared admin password matches."""
        expected = settings.ADMIN_PASSWORD
        if not expected or not password or not hmac.compare_digest(password.encode(), expected.encode()):
            raise AuthenticationError("Invalid admin password")

        user = await self._get(user_id)
        if user.get("role") != UserRole.ADMIN.value:
            await self.collection.update_one(
                {"_id": user["_id"]},
                {"$set": {"role": UserRole.ADMIN.value, "updatedAt": datetime.utcnow()}}
            )
            user["role"] = UserRole.ADMIN.value
            logger.info(f"User {user_id} elevated to admin")
        return self._session_payload(user)

    async def set_role(self, email: str, role: UserRole) -> Dict[str, Any]:
        """Change a user's role by email (maintenance scripts)."""
        user = await self.collection.find_one_and_update(
            {"email": email.strip().lower()},
            {"$set": {"role": role.value, "updatedAt": datetime.utcnow()}},
            projection={"passwordHash": 0},
            return_document=ReturnDocument.AFTER
        )
        if not user:
            raise NotFoundError("User", email)
        return user_profile(user)
