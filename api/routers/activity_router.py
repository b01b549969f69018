from typing import Optional

from fastapi import APIRouter, Depends

from common.database import get_database
from common.response import create_success_response, StandardResponse
from common.auth import AuthenticatedUser
from services.activity import ActivityService
from api.middleware import RateLimiter

router = APIRouter()


async def get_activity_service(db=Depends(get_database)) -> ActivityService:
    return ActivityService(db)


@router.get("", response_model=StandardResponse, dependencies=[Depends(RateLimiter("activity_read"))])
async def recent_activity(
    user: AuthenticatedUser,
    limit: Optional[int] = None,
    service: ActivityService = Depends(get_activity_service)
):
    """Latest journal and resource activity (2 by default, at most 10)"""
    return create_success_response(data=await service.list_recent(user.id, limit))
