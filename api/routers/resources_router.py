"""
Resource library endpoints

Listing, search, view counting and helpful marks are public. View and
helpful updates are broadcast to the ``resources`` room. Mutations under
``/admin`` need the admin role.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from common.database import get_database
from common.response import create_success_response, StandardResponse
from common.auth import OptionalUser, AdminUser
from services.resources import ResourceService, ResourceCreate, ResourceUpdate, HelpfulRequest
from services.realtime import get_broadcaster
from api.middleware import RateLimiter

router = APIRouter()


async def get_resource_service(db=Depends(get_database), broadcaster=Depends(get_broadcaster)) -> ResourceService:
    return ResourceService(db, broadcaster)


@router.get("/featured", response_model=StandardResponse)
async def featured(service: ResourceService = Depends(get_resource_service)):
    """Featured videos, audios and articles (six each)"""
    return create_success_response(data=await service.get_featured())


@router.get(
    "/search",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("resource_search"))]
)
async def search(query: Optional[str] = None, service: ResourceService = Depends(get_resource_service)):
    return create_success_response(data=await service.search(query))


@router.get("/all", response_model=StandardResponse)
async def all_resources(service: ResourceService = Depends(get_resource_service)):
    return create_success_response(data=await service.get_all())


@router.post(
    "/admin/create",
    status_code=status.HTTP_201_CREATED,
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("resource_mutation"))]
)
async def create_resource(
    payload: ResourceCreate,
    admin: AdminUser,
    service: ResourceService = Depends(get_resource_service)
):
    return create_success_response(data=await service.create(payload))


@router.patch(
    "/admin/{id}",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("resource_mutation"))]
)
async def update_resource(
    id: str,
    payload: ResourceUpdate,
    admin: AdminUser,
    service: ResourceService = Depends(get_resource_service)
):
    return create_success_response(data=await service.update(id, payload))


@router.delete(
    "/admin/{id}",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("resource_mutation"))]
)
async def delete_resource(id: str, admin: AdminUser, service: ResourceService = Depends(get_resource_service)):
    await service.delete(id)
    return create_success_response(message="Resource deleted successfully")


@router.get("/{id}", response_model=StandardResponse)
async def get_resource(id: str, service: ResourceService = Depends(get_resource_service)):
    return create_success_response(data=await service.get(id))


@router.post(
    "/{id}/view",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("resource_view"))]
)
async def record_view(id: str, user: OptionalUser, service: ResourceService = Depends(get_resource_service)):
    resource = await service.record_view(id, user.id if user else None)
    return create_success_response(data=resource)


@router.post(
    "/{id}/helpful",
    response_model=StandardResponse,
    dependencies=[Depends(RateLimiter("resource_helpful"))]
)
async def mark_helpful(
    id: str,
    payload: Optional[HelpfulRequest] = None,
    service: ResourceService = Depends(get_resource_service)
):
    """``{"action": "unlike"}`` decrements, anything else increments"""
    action = payload.action if payload else None
    return create_success_response(data=await service.mark_helpful(id, action))
