"""
Forum endpoints

Reads are public; posting, commenting, liking and reporting require a
signed-in user.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from common.database import get_database
from common.response import create_success_response, StandardResponse
from common.auth import AuthenticatedUser
from services.forum import ForumService, PostCreate, CommentCreate, ReportRequest, DEFAULT_POST_LIMIT
from services.realtime import get_broadcaster
from api.middleware import RateLimiter

router = APIRouter()


async def get_forum_service(db=Depends(get_database), broadcaster=Depends(get_broadcaster)) -> ForumService:
    return ForumService(db, broadcaster)


@router.get(
    "/posts",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("forum_read"))]
)
async def list_posts(
    tag: Optional[str] = None,
    q: Optional[str] = None,
    category: Optional[str] = None,
    sort: str = "-createdAt",
    limit: int = Query(DEFAULT_POST_LIMIT, ge=1, le=500),
    service: ForumService = Depends(get_forum_service)
):
    posts = await service.list_posts(tag=tag, q=q, category=category, sort=sort, limit=limit)
    return create_success_response(data=posts)


@router.get(
    "/posts/{id}",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("forum_read"))]
)
async def get_post(id: str, service: ForumService = Depends(get_forum_service)):
    return create_success_response(data=await service.get_post(id))


@router.get(
    "/posts/{id}/comments",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("forum_read"))]
)
async def list_comments(
    id: str,
    parentId: Optional[str] = None,
    service: ForumService = Depends(get_forum_service)
):
    return create_success_response(data=await service.list_comments(id, parentId))


@router.post(
    "/posts",
    status_code=status.HTTP_201_CREATED,
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("forum_create_post"))]
)
async def create_post(
    payload: PostCreate,
    user: AuthenticatedUser,
    service: ForumService = Depends(get_forum_service)
):
    return create_success_response(data=await service.create_post(user.id, payload))


@router.post(
    "/posts/{id}/comments",
    status_code=status.HTTP_201_CREATED,
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("forum_comment"))]
)
async def add_comment(
    id: str,
    payload: CommentCreate,
    user: AuthenticatedUser,
    service: ForumService = Depends(get_forum_service)
):
    return create_success_response(data=await service.add_comment(id, user.id, payload))


@router.post(
    "/posts/{id}/like",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("forum_like"))]
)
async def like_post(id: str, user: AuthenticatedUser, service: ForumService = Depends(get_forum_service)):
    """Toggle the caller's like; returns ``{liked, likesCount}``"""
    return create_success_response(data=await service.toggle_post_like(id, user.id))


@router.post(
    "/posts/{id}/report",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("forum_report"))]
)
async def report_post(
    id: str,
    user: AuthenticatedUser,
    payload: Optional[ReportRequest] = None,
    service: ForumService = Depends(get_forum_service)
):
    await service.report_post(id, user.id, payload.reason if payload else None)
    return create_success_response(message="Post reported successfully")


@router.post(
    "/comments/{id}/like",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("forum_like"))]
)
async def like_comment(id: str, user: AuthenticatedUser, service: ForumService = Depends(get_forum_service)):
    return create_success_response(data=await service.toggle_comment_like(id, user.id))
