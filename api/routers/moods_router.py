from typing import Optional

from fastapi import APIRouter, Depends, Query

from common.database import get_database
from common.response import create_success_response, StandardResponse
from common.auth import AuthenticatedUser
from services.moods import MoodService, MoodUpsert

router = APIRouter()


async def get_mood_service(db=Depends(get_database)) -> MoodService:
    return MoodService(db)


@router.put("/today", response_model=StandardResponse)
async def upsert_today(
    payload: MoodUpsert,
    user: AuthenticatedUser,
    service: MoodService = Depends(get_mood_service)
):
    """Create or overwrite the caller's mood for today"""
    return create_success_response(data=await service.upsert_today(user.id, payload))


@router.get("", response_model=StandardResponse)
async def list_moods(
    user: AuthenticatedUser,
    start: Optional[str] = Query(None, alias="from"),
    end: Optional[str] = Query(None, alias="to"),
    service: MoodService = Depends(get_mood_service)
):
    return create_success_response(data=await service.list(user.id, start, end))
