"""Daily mood log: one entry per user per calendar day"""

from datetime import datetime, date, time
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ReturnDocument

from common.exceptions import ValidationError
from common.database import to_object_id, serialize_document


class MoodUpsert(BaseModel):
    mood: Optional[int] = None
    notes: Optional[str] = None


def start_of_day(moment: Optional[datetime] = None) -> datetime:
    moment = moment or datetime.utcnow()
    return datetime.combine(moment.date(), time.min)


def _parse_day(value: Optional[str], field: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        try:
            return datetime.combine(date.fromisoformat(value), time.min)
        except ValueError:
            raise ValidationError(errors=[f"'{field}' must be an ISO date"])


class MoodService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.mood_logs

    async def upsert_today(self, user_id: str, payload: MoodUpsert, now: Optional[datetime] = None) -> Dict[str, Any]:
        if payload.mood is not None and not 1 <= payload.mood <= 10:
            raise ValidationError("Mood must be between 1 and 10")

        moment = now or datetime.utcnow()
        entry = await self.collection.find_one_and_update(
            {"userId": to_object_id(user_id), "date": start_of_day(moment)},
            {
                "$set": {"mood": payload.mood, "notes": payload.notes, "updatedAt": moment},
                "$setOnInsert": {"createdAt": moment},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return serialize_document(entry)

    async def list(self, user_id: str, start: Optional[str] = None, end: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"userId": to_object_id(user_id)}
        date_range = {}
        lower, upper = _parse_day(start, "from"), _parse_day(end, "to")
        if lower:
            date_range["$gte"] = lower
        if upper:
            date_range["$lte"] = upper
        if date_range:
            query["date"] = date_range

        cursor = self.collection.find(query).sort("date", 1)
        return [serialize_document(doc) async for doc in cursor]
