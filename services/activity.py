"""
Analytics events and the recent activity feed
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from common.logger import get_logger
from common.database import to_object_id, serialize_document

logger = get_logger(__name__)

JOURNAL_CREATED = "journal.created"
RESOURCE_VIEWED = "resource.viewed"
ACTIVITY_TYPES = (JOURNAL_CREATED, RESOURCE_VIEWED)

DEFAULT_ACTIVITY_LIMIT = 2
MAX_ACTIVITY_LIMIT = 10


def normalize_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten an analytics event into the shape the dashboard renders"""
    meta = event.get("meta") or {}
    base = {
        "id": event["_id"],
        "type": event.get("type"),
        "createdAt": event.get("createdAt"),
    }
    if event.get("type") == JOURNAL_CREATED:
        base.update({
            "kind": "journal",
            "journalId": meta.get("journalId"),
            "mood": meta.get("mood"),
            "preview": meta.get("preview") or "",
        })
    elif event.get("type") == RESOURCE_VIEWED:
        base.update({
            "kind": "resource",
            "resourceId": meta.get("resourceId"),
            "resourceType": meta.get("resourceType"),
            "title": meta.get("title"),
            "url": meta.get("url"),
        })
    else:
        base.update({"kind": "unknown", "meta": meta})
    return serialize_document(base)


class ActivityService:
    """Writes analytics events and reads them back as activity"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.analytics_events

    async def record(self, user_id: str, event_type: str, meta: Dict[str, Any]):
        """
        Store an analytics event.

        Failures are logged and swallowed; analytics never fails the request
        that produced it.
        """
        try:
            await self.collection.insert_one({
                "userId": to_object_id(user_id),
                "type": event_type,
                "meta": meta,
                "createdAt": datetime.utcnow(),
            })
        except Exception as e:
            logger.warning(f"Failed to log {event_type} event: {e}")

    async def list_recent(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        if not limit or limit < 1:
            limit = DEFAULT_ACTIVITY_LIMIT
        limit = min(limit, MAX_ACTIVITY_LIMIT)
        cursor = self.collection.find({
            "userId": to_object_id(user_id),
            "type": {"$in": list(ACTIVITY_TYPES)},
        }).sort("createdAt", -1).limit(limit)
        return [normalize_event(event) async for event in cursor]
