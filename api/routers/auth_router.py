"""
Authentication endpoints: signup, login, token refresh and admin elevation
"""

from fastapi import APIRouter, Depends, status

from common.response import create_success_response, StandardResponse
from common.logger import get_logger
from common.auth import (
    UserService,
    SignupRequest,
    LoginRequest,
    RefreshRequest,
    AdminElevateRequest,
    AuthenticatedUser,
    get_user_service
)
from api.middleware import RateLimiter

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("auth_signup"))]
)
async def signup(payload: SignupRequest, service: UserService = Depends(get_user_service)):
    """Create an account and return a credential pair"""
    data = await service.signup(payload)
    return create_success_response(data=data, message="Signup successful")


@router.post(
    "/login",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("auth_login"))]
)
async def login(payload: LoginRequest, service: UserService = Depends(get_user_service)):
    return create_success_response(data=await service.login(payload))


@router.post(
    "/refresh",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("auth_refresh"))]
)
async def refresh(payload: RefreshRequest, service: UserService = Depends(get_user_service)):
    """Exchange a refresh token for a new access token"""
    return create_success_response(data=await service.refresh(payload.refreshToken))


@router.get("/me", response_model=StandardResponse)
async def me(user: AuthenticatedUser, service: UserService = Depends(get_user_service)):
    return create_success_response(data=await service.get_profile(user.id))


@router.post("/logout", response_model=StandardResponse)
async def logout(user: AuthenticatedUser):
    """
    Tokens are stateless, so logging out is a client side operation; the
    endpoint exists so clients have a single place to report it.
    """
    logger.info(f"User logged out: {user.id}")
    return create_success_response(message="Logged out")


@router.post(
    "/admin-elevate",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("auth_admin_elevate"))]
)
async def admin_elevate(
    payload: AdminElevateRequest,
    user: AuthenticatedUser,
    service: UserService = Depends(get_user_service)
):
    data = await service.admin_elevate(user.id, payload.password)
    return create_success_response(data=data, message="Admin role granted")
