"""
Authentication models for Zenly Platform Service

Request bodies for the auth and user endpoints plus the role enumeration.
Field names follow the JSON the frontend sends (camelCase).
"""

from datetime import datetime
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """User roles"""
    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"
    COUNSELOR = "counselor"


class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    university: Optional[str] = None
    academicYear: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RefreshRequest(BaseModel):
    refreshToken: Optional[str] = None


class AdminElevateRequest(BaseModel):
    password: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Only the fields present in the request body are written"""
    name: Optional[str] = Field(None, max_length=100)
    avatarUrl: Optional[str] = None
    university: Optional[str] = Field(None, max_length=200)
    firstName: Optional[str] = Field(None, max_length=100)
    lastName: Optional[str] = Field(None, max_length=100)
    academicYear: Optional[str] = None


class AvatarUpdate(BaseModel):
    avatarUrl: Optional[str] = None


class PasswordChange(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None


class CurrentUser(BaseModel):
    """Identity carried by a verified access token"""
    id: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class PublicUser(BaseModel):
    """User summary returned with a credential pair"""
    id: str
    email: str
    name: str
    role: UserRole
    emailVerified: bool = False
    lastActive: Optional[datetime] = None
