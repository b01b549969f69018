"""
Admin dashboard endpoints. Every route requires the admin role.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from common.database import get_database
from common.response import create_success_response, StandardResponse
from common.auth import UserRole, require_role
from services.admin import AdminService, DEFAULT_USER_LIMIT, DEFAULT_ADMIN_POST_LIMIT
from services.realtime import get_broadcaster
from api.middleware import RateLimiter

router = APIRouter(
    dependencies=[Depends(require_role(UserRole.ADMIN))]
)

read_limit = Depends(RateLimiter("admin_read"))
mutation_limit = Depends(RateLimiter("admin_mutation"))


async def get_admin_service(db=Depends(get_database), broadcaster=Depends(get_broadcaster)) -> AdminService:
    return AdminService(db, broadcaster)


@router.get("/users", response_model=StandardResponse, dependencies=[read_limit])
async def list_users(
    q: Optional[str] = None,
    limit: int = Query(DEFAULT_USER_LIMIT, ge=1, le=200),
    service: AdminService = Depends(get_admin_service)
):
    return create_success_response(data=await service.list_users(q, limit))


@router.get("/forum/reported-posts", response_model=StandardResponse, dependencies=[read_limit])
async def reported_posts(service: AdminService = Depends(get_admin_service)):
    return create_success_response(data=await service.reported_posts())


@router.get("/forum/all-posts", dependencies=[read_limit])
async def all_posts(
    limit: int = Query(DEFAULT_ADMIN_POST_LIMIT, ge=1, le=DEFAULT_ADMIN_POST_LIMIT),
    skip: int = Query(0, ge=0),
    search: Optional[str] = None,
    category: Optional[str] = None,
    service: AdminService = Depends(get_admin_service)
):
    """All posts with ``total`` and ``hasMore`` next to ``data``"""
    page = await service.all_posts(limit=limit, skip=skip, search=search, category=category)
    return create_success_response(data=page["posts"], total=page["total"], hasMore=page["hasMore"])


@router.delete("/forum/posts/{id}", response_model=StandardResponse, dependencies=[mutation_limit])
async def delete_post(id: str, service: AdminService = Depends(get_admin_service)):
    await service.delete_post(id)
    return create_success_response(message="Post and associated data deleted successfully")


@router.post("/forum/posts/{id}/dismiss-reports", response_model=StandardResponse, dependencies=[mutation_limit])
async def dismiss_reports(id: str, service: AdminService = Depends(get_admin_service)):
    post = await service.dismiss_reports(id)
    return create_success_response(data=post, message="Reports dismissed successfully")


@router.post("/forum/posts/{id}/pin", response_model=StandardResponse, dependencies=[mutation_limit])
async def toggle_pin(id: str, service: AdminService = Depends(get_admin_service)):
    return create_success_response(data=await service.toggle_pin(id))
