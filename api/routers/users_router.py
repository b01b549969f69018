"""
Profile endpoints for the signed-in user (``/users/me``)
"""

from fastapi import APIRouter, Depends

from common.response import create_success_response, StandardResponse
from common.auth import (
    UserService,
    ProfileUpdate,
    AvatarUpdate,
    PasswordChange,
    AuthenticatedUser,
    get_user_service
)
from api.middleware import RateLimiter

router = APIRouter()


@router.get(
    "",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("user_profile_read"))]
)
async def get_me(user: AuthenticatedUser, service: UserService = Depends(get_user_service)):
    return create_success_response(data=await service.get_profile(user.id))


@router.patch(
    "",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("user_profile_update"))]
)
async def update_me(
    payload: ProfileUpdate,
    user: AuthenticatedUser,
    service: UserService = Depends(get_user_service)
):
    """Update name, avatar, university, first/last name or academic year"""
    return create_success_response(data=await service.update_profile(user.id, payload))


@router.put(
    "/avatar",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("user_avatar_update"))]
)
async def update_avatar(
    payload: AvatarUpdate,
    user: AuthenticatedUser,
    service: UserService = Depends(get_user_service)
):
    return create_success_response(data=await service.update_avatar(user.id, payload.avatarUrl))


@router.post(
    "/password",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("user_password_change"))]
)
async def change_password(
    payload: PasswordChange,
    user: AuthenticatedUser,
    service: UserService = Depends(get_user_service)
):
    await service.change_password(user.id, payload)
    return create_success_response(message="Password changed successfully")
