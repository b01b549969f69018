"""
Database connection management for Zenly Platform Service

This module owns the MongoDB (motor) client, the optional Redis client used
for shared rate-limit counters, index creation and document serialization.
"""

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
import redis.asyncio as redis

from common.config import get_settings
from common.logger import get_logger
from common.exceptions import InvalidIdentifierError

settings = get_settings()
logger = get_logger(__name__)

# --- Global connection instances ---
_mongodb_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None
_redis_client: Optional[redis.Redis] = None


async def connect_to_databases():
    """
    Connect to MongoDB (and Redis when it backs the rate limiter).
    Called from the application lifespan.
    """
    global _mongodb_client, _database, _redis_client

    if _database is None:
        logger.info("Connecting to MongoDB...")
        _mongodb_client = AsyncIOMotorClient(settings.MONGODB_URL)
        _database = _mongodb_client[settings.MONGODB_DATABASE]
        logger.info(f"Connected to MongoDB database '{settings.MONGODB_DATABASE}'")

    if settings.RATE_LIMIT_STORAGE == "redis" and _redis_client is None:
        logger.info("Connecting to Redis...")
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        logger.info("Connected to Redis")


async def close_database_connections():
    """
    Close all database connections. Called from the application lifespan.
    """
    global _mongodb_client, _database, _redis_client

    if _mongodb_client:
        logger.info("Closing MongoDB connection...")
        _mongodb_client.close()
        _mongodb_client = None
        _database = None

    if _redis_client:
        logger.info("Closing Redis connection...")
        await _redis_client.aclose()
        _redis_client = None


# --- Dependency getters ---

async def get_database() -> AsyncIOMotorDatabase:
    """Return the MongoDB database, connecting on first use."""
    if _database is None:
        await connect_to_databases()
    return _database


async def get_redis_client() -> Optional[redis.Redis]:
    """Return the Redis client, or None when Redis storage is disabled."""
    return _redis_client


async def check_mongodb_health() -> bool:
    try:
        db = await get_database()
        await db.command("ping")
        return True
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return False


async def check_redis_health() -> Optional[bool]:
    """None when rate limit counters are kept in memory"""
    if _redis_client is None:
        return None
    try:
        return bool(await _redis_client.ping())
    except redis.RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        return False


async def create_indexes(db: AsyncIOMotorDatabase):
    """Create the indexes the queries rely on. Safe to run repeatedly."""
    await db.users.create_index("email", unique=True)
    await db.users.create_index("role")

    await db.resources.create_index("title")
    await db.resources.create_index("tags")
    await db.resources.create_index([("type", ASCENDING), ("isFeatured", ASCENDING), ("priority", DESCENDING)])
    await db.resources.create_index([("createdAt", DESCENDING)])

    await db.forum_posts.create_index([("isPinned", DESCENDING), ("createdAt", DESCENDING)])
    await db.forum_posts.create_index([("category", ASCENDING), ("createdAt", DESCENDING)])
    await db.forum_posts.create_index([("userId", ASCENDING), ("deletedAt", ASCENDING)])

    await db.forum_comments.create_index([("postId", ASCENDING), ("parentCommentId", ASCENDING)])
    await db.forum_reactions.create_index(
        [("postId", ASCENDING), ("userId", ASCENDING)],
        unique=True,
        partialFilterExpression={"postId": {"$exists": True}}
    )
    await db.forum_reactions.create_index(
        [("commentId", ASCENDING), ("userId", ASCENDING)],
        unique=True,
        partialFilterExpression={"commentId": {"$exists": True}}
    )

    await db.journal_entries.create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])
    await db.mood_logs.create_index([("userId", ASCENDING), ("date", ASCENDING)], unique=True)
    await db.analytics_events.create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])
    logger.info("MongoDB indexes ensured")


# --- Helpers ---

def to_object_id(value: Any) -> ObjectId:
    """Convert a path/body identifier into an ObjectId or raise a 400."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise InvalidIdentifierError(str(value))


def serialize_document(value: Any) -> Any:
    """Recursively turn a Mongo document into JSON friendly data."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: serialize_document(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_document(item) for item in value]
    return value
