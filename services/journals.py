"""
Private journal entries

Entries belong to one user, are paged newest first with an ``_id`` cursor
and are soft deleted. Creating an entry logs a ``journal.created`` event
that feeds the dashboard activity list.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field
from pymongo import ReturnDocument

from common.logger import get_logger
from common.exceptions import NotFoundError, ValidationError
from common.database import to_object_id, serialize_document
from services.activity import ActivityService, JOURNAL_CREATED

logger = get_logger(__name__)

MAX_CONTENT_LENGTH = 10000
MIN_MOOD, MAX_MOOD = 1, 10
PREVIEW_LENGTH = 80
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_TIME_RANGE = "30d"


class JournalCreate(BaseModel):
    content: Optional[str] = None
    mood: Optional[int] = None
    tags: List[str] = Field(default_factory=list)


class JournalUpdate(BaseModel):
    content: Optional[str] = None
    mood: Optional[int] = None
    tags: Optional[List[str]] = None


def _check_content(content: Optional[str]):
    if not content or not content.strip():
        raise ValidationError("Journal content is required")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError("Journal content too long (max 10,000 characters)")


def _check_mood(mood: Optional[int]):
    if mood is not None and not MIN_MOOD <= mood <= MAX_MOOD:
        raise ValidationError(f"Mood must be between {MIN_MOOD} and {MAX_MOOD}")


def parse_time_range(time_range: Optional[str]) -> int:
    """``"30d"`` -> 30. Leading digits only, like the dashboard sends."""
    digits = ""
    for char in (time_range or DEFAULT_TIME_RANGE).strip():
        if not char.isdigit():
            break
        digits += char
    if not digits:
        raise ValidationError("Invalid timeRange")
    return int(digits)


def journaling_streak(created: List[datetime]) -> int:
    """
    Count consecutive calendar days with an entry, walking back from the
    most recent one. ``created`` must be sorted newest first.
    """
    if not created:
        return 0
    streak = 1
    days = [dt.date() for dt in created]
    for current, previous in zip(days, days[1:]):
        gap = (current - previous).days
        if gap == 1:
            streak += 1
        elif gap > 1:
            break
    return streak


class JournalService:
    """Journal operations scoped to the calling user"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.journal_entries
        self.activity = ActivityService(db)

    def _owned(self, user_id: str, journal_id: str) -> Dict[str, Any]:
        return {"_id": to_object_id(journal_id), "userId": to_object_id(user_id), "deletedAt": None}

    async def create(self, user_id: str, payload: JournalCreate) -> Dict[str, Any]:
        _check_content(payload.content)
        _check_mood(payload.mood)

        now = datetime.utcnow()
        content = payload.content.strip()
        entry = {
            "userId": to_object_id(user_id),
            "content": content,
            "mood": payload.mood,
            "tags": payload.tags,
            "deletedAt": None,
            "createdAt": now,
            "updatedAt": now,
        }
        result = await self.collection.insert_one(entry)
        entry["_id"] = result.inserted_id

        await self.activity.record(user_id, JOURNAL_CREATED, {
            "journalId": str(result.inserted_id),
            "mood": payload.mood,
            "preview": content[:PREVIEW_LENGTH],
        })
        logger.info(f"Journal created: {result.inserted_id}")
        return serialize_document(entry)

    async def list(
        self,
        user_id: str,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        One page of entries, newest first.

        Fetches ``limit + 1`` documents to learn whether another page exists;
        ``nextCursor`` is the id of the last entry returned.
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        owner = {"userId": to_object_id(user_id), "deletedAt": None}
        query = dict(owner)
        if cursor:
            query["_id"] = {"$lt": to_object_id(cursor)}

        docs = [doc async for doc in self.collection.find(query).sort("_id", -1).limit(limit + 1)]
        has_more = len(docs) > limit
        page = docs[:limit]
        next_cursor = str(page[-1]["_id"]) if has_more else None
        total = await self.collection.count_documents(owner)

        return {
            "items": [serialize_document(doc) for doc in page],
            "next_cursor": next_cursor,
            "has_more": has_more,
            "total": total,
            "limit": limit,
        }

    async def get(self, user_id: str, journal_id: str) -> Dict[str, Any]:
        entry = await self.collection.find_one(self._owned(user_id, journal_id))
        if not entry:
            raise NotFoundError("Journal", journal_id)
        return serialize_document(entry)

    async def update(self, user_id: str, journal_id: str, payload: JournalUpdate) -> Dict[str, Any]:
        changes = payload.model_dump(exclude_unset=True)
        update: Dict[str, Any] = {"updatedAt": datetime.utcnow()}
        if changes.get("content") is not None:
            _check_content(changes["content"])
            update["content"] = changes["content"].strip()
        if "mood" in changes:
            _check_mood(changes["mood"])
            update["mood"] = changes["mood"]
        if changes.get("tags") is not None:
            update["tags"] = changes["tags"]

        entry = await self.collection.find_one_and_update(
            self._owned(user_id, journal_id),
            {"$set": update},
            return_document=ReturnDocument.AFTER
        )
        if not entry:
            raise NotFoundError("Journal", journal_id)
        return serialize_document(entry)

    async def delete(self, user_id: str, journal_id: str):
        """Soft delete; the entry disappears from every read"""
        result = await self.collection.update_one(
            self._owned(user_id, journal_id),
            {"$set": {"deletedAt": datetime.utcnow()}}
        )
        if result.matched_count == 0:
            raise NotFoundError("Journal", journal_id)

    async def stats(self, user_id: str, time_range: Optional[str] = None) -> Dict[str, Any]:
        days = parse_time_range(time_range)
        owner = {"userId": to_object_id(user_id), "deletedAt": None}
        since = datetime.utcnow() - timedelta(days=days)

        recent = [
            doc async for doc in self.collection.find(
                {**owner, "createdAt": {"$gte": since}}, {"mood": 1}
            )
        ]
        moods = [doc["mood"] for doc in recent if doc.get("mood")]
        avg_mood = round(sum(moods) / len(moods), 1) if moods else 0

        created = [
            doc["createdAt"] async for doc in
            self.collection.find(owner, {"createdAt": 1}).sort("createdAt", -1)
        ]
        return {
            "total": len(recent),
            "avgMood": avg_mood,
            "journalingStreak": journaling_streak(created),
            "timeRange": time_range or DEFAULT_TIME_RANGE,
        }
