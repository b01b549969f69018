"""
Resource library service

Videos, audio and articles with engagement counters. View and helpful
updates use single-document ``$inc`` and are broadcast to the ``resources``
room as full counter snapshots.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field, field_validator
from pymongo import ReturnDocument

from common.logger import get_logger
from common.exceptions import NotFoundError, ValidationError
from common.database import to_object_id, serialize_document
from services.embed import extract_embed_data, embed_for_update
from services.activity import ActivityService, RESOURCE_VIEWED
from services.realtime import RealtimeBroadcaster

logger = get_logger(__name__)

FEATURED_LIMIT = 6
SEARCH_LIMIT = 20
LIST_SORT = [("isFeatured", -1), ("priority", -1), ("createdAt", -1)]


class ResourceType(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    ARTICLE = "article"


# Keys of the grouped listings, in display order
TYPE_GROUPS = {
    ResourceType.VIDEO: "videos",
    ResourceType.AUDIO: "audios",
    ResourceType.ARTICLE: "articles",
}


class HelpfulAction(str, Enum):
    LIKE = "like"
    UNLIKE = "unlike"


class ResourceCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    type: ResourceType
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    language: str = "English"
    duration: Optional[str] = None
    author: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    isFeatured: bool = False
    priority: int = 0
    isActive: bool = True

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        return v.strip()

    @field_validator("categories")
    @classmethod
    def _strip_categories(cls, v: List[str]) -> List[str]:
        return [c.strip() for c in v]

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: List[str]) -> List[str]:
        return [t.strip().lower() for t in v]


class ResourceUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    type: Optional[ResourceType] = None
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    language: Optional[str] = None
    duration: Optional[str] = None
    author: Optional[str] = None
    thumbnailUrl: Optional[str] = None
    isFeatured: Optional[bool] = None
    priority: Optional[int] = None
    isActive: Optional[bool] = None

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [t.strip().lower() for t in v]


class HelpfulRequest(BaseModel):
    action: Optional[HelpfulAction] = None


class ResourceService:
    """Resource library operations"""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        broadcaster: Optional[RealtimeBroadcaster] = None
    ):
        self.db = db
        self.collection = db.resources
        self.broadcaster = broadcaster
        self.activity = ActivityService(db)

    async def _find(self, query: Dict[str, Any], sort, limit: int = 0) -> List[Dict[str, Any]]:
        cursor = self.collection.find(query).sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return [serialize_document(doc) async for doc in cursor]

    async def get_featured(self) -> Dict[str, List[Dict[str, Any]]]:
        """Up to six featured active resources per type"""
        featured = {}
        for resource_type, group in TYPE_GROUPS.items():
            featured[group] = await self._find(
                {"type": resource_type.value, "isFeatured": True, "isActive": True},
                [("priority", -1), ("createdAt", -1)],
                FEATURED_LIMIT
            )
        return featured

    async def get_all(self) -> Dict[str, List[Dict[str, Any]]]:
        """Every active resource grouped by type, featured first"""
        grouped = {}
        for resource_type, group in TYPE_GROUPS.items():
            grouped[group] = await self._find({"type": resource_type.value, "isActive": True}, LIST_SORT)
        return grouped

    async def search(self, query: Optional[str]) -> List[Dict[str, Any]]:
        """Case-insensitive substring match on title and tags"""
        if not query:
            raise ValidationError("Query parameter required")
        pattern = re.compile(re.escape(query), re.IGNORECASE)
        return await self._find(
            {"$or": [{"title": pattern}, {"tags": pattern}], "isActive": True},
            LIST_SORT,
            SEARCH_LIMIT
        )

    async def get(self, resource_id: str) -> Dict[str, Any]:
        resource = await self.collection.find_one({"_id": to_object_id(resource_id)})
        if not resource:
            raise NotFoundError("Resource", resource_id)
        return serialize_document(resource)

    async def _increment(self, resource_id: str, field: str, amount: int) -> Dict[str, Any]:
        resource = await self.collection.find_one_and_update(
            {"_id": to_object_id(resource_id)},
            {"$inc": {field: amount}},
            return_document=ReturnDocument.AFTER
        )
        if not resource:
            raise NotFoundError("Resource", resource_id)
        return resource

    async def record_view(self, resource_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        resource = await self._increment(resource_id, "viewCount", 1)
        rid = str(resource["_id"])

        if self.broadcaster:
            await self.broadcaster.resource_view_update(rid, resource.get("viewCount", 0))

        if user_id:
            await self.activity.record(user_id, RESOURCE_VIEWED, {
                "resourceId": rid,
                "resourceType": resource.get("type"),
                "title": resource.get("title"),
                "url": resource.get("url"),
            })
        return serialize_document(resource)

    async def mark_helpful(self, resource_id: str, action: Optional[HelpfulAction]) -> Dict[str, Any]:
        """``unlike`` decrements; anything else (including no action) increments."""
        amount = -1 if action == HelpfulAction.UNLIKE else 1
        resource = await self._increment(resource_id, "helpfulCount", amount)

        if self.broadcaster:
            await self.broadcaster.resource_like_update(
                str(resource["_id"]),
                resource.get("helpfulCount", 0),
                action.value if action else None
            )
        return serialize_document(resource)

    async def create(self, payload: ResourceCreate) -> Dict[str, Any]:
        now = datetime.utcnow()
        doc = payload.model_dump(mode="json")
        doc.update({
            "viewCount": 0,
            "helpfulCount": 0,
            "embedData": extract_embed_data(doc["url"], doc.get("thumbnailUrl")),
            "createdAt": now,
            "updatedAt": now,
        })
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info(f"Resource created: {result.inserted_id} ({doc['type']})")
        return serialize_document(doc)

    async def update(self, resource_id: str, payload: ResourceUpdate) -> Dict[str, Any]:
        oid = to_object_id(resource_id)
        existing = await self.collection.find_one({"_id": oid})
        if not existing:
            raise NotFoundError("Resource", resource_id)

        changes = payload.model_dump(mode="json", exclude_unset=True)
        embed = embed_for_update(existing, changes)
        if embed is not None:
            changes["embedData"] = embed
        changes["updatedAt"] = datetime.utcnow()

        resource = await self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if not resource:
            raise NotFoundError("Resource", resource_id)
        return serialize_document(resource)

    async def delete(self, resource_id: str):
        result = await self.collection.delete_one({"_id": to_object_id(resource_id)})
        if result.deleted_count == 0:
            raise NotFoundError("Resource", resource_id)
        logger.info(f"Resource deleted: {resource_id}")

    async def refresh_embed_data(self, resource: Dict[str, Any], thumbnail_url: Optional[str] = None) -> Dict[str, str]:
        """Recompute and store embed metadata for one resource (maintenance)."""
        thumbnail = thumbnail_url or resource.get("thumbnailUrl")
        embed = extract_embed_data(resource.get("url"), thumbnail)
        update = {"embedData": embed, "updatedAt": datetime.utcnow()}
        if thumbnail_url and not resource.get("thumbnailUrl"):
            update["thumbnailUrl"] = thumbnail_url
        await self.collection.update_one({"_id": resource["_id"]}, {"$set": update})
        return embed
