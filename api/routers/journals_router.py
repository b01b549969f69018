"""
Journal endpoints (authenticated, scoped to the caller)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from common.database import get_database
from common.response import create_success_response, create_cursor_page, StandardResponse, CursorPage
from common.auth import AuthenticatedUser
from services.journals import JournalService, JournalCreate, JournalUpdate, DEFAULT_PAGE_SIZE
from api.middleware import RateLimiter

router = APIRouter()


async def get_journal_service(db=Depends(get_database)) -> JournalService:
    return JournalService(db)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("journal_write"))]
)
async def create_journal(
    payload: JournalCreate,
    user: AuthenticatedUser,
    service: JournalService = Depends(get_journal_service)
):
    entry = await service.create(user.id, payload)
    return create_success_response(data=entry, message="Journal created successfully")


@router.get(
    "",
    response_model=CursorPage,
    dependencies=[Depends(RateLimiter("journal_read"))]
)
async def list_journals(
    user: AuthenticatedUser,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    cursor: Optional[str] = None,
    service: JournalService = Depends(get_journal_service)
):
    """Newest first; pass ``pagination.nextCursor`` back as ``cursor`` for the next page"""
    page = await service.list(user.id, limit=limit, cursor=cursor)
    return create_cursor_page(
        page["items"],
        next_cursor=page["next_cursor"],
        has_more=page["has_more"],
        total=page["total"],
        limit=page["limit"]
    )


@router.get(
    "/stats",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("journal_read"))]
)
async def journal_stats(
    user: AuthenticatedUser,
    timeRange: str = "30d",
    service: JournalService = Depends(get_journal_service)
):
    return create_success_response(data=await service.stats(user.id, timeRange))


@router.get(
    "/{id}",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("journal_read"))]
)
async def get_journal(id: str, user: AuthenticatedUser, service: JournalService = Depends(get_journal_service)):
    return create_success_response(data=await service.get(user.id, id))


@router.patch(
    "/{id}",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("journal_write"))]
)
async def update_journal(
    id: str,
    payload: JournalUpdate,
    user: AuthenticatedUser,
    service: JournalService = Depends(get_journal_service)
):
    entry = await service.update(user.id, id, payload)
    return create_success_response(data=entry, message="Journal updated successfully")


@router.delete(
    "/{id}",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("journal_write"))]
)
async def delete_journal(id: str, user: AuthenticatedUser, service: JournalService = Depends(get_journal_service)):
    await service.delete(user.id, id)
    return create_success_response(message="Journal deleted successfully")
