"""
Peer support forum service

Posts, threaded comments (at most five levels deep), like toggles backed by
the ``forum_reactions`` collection and user reports. New posts and like
count changes are pushed to the ``forum`` room.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field
from pymongo import ReturnDocument

from common.logger import get_logger
from common.exceptions import NotFoundError, ValidationError
from common.database import to_object_id, serialize_document
from services.realtime import RealtimeBroadcaster

logger = get_logger(__name__)

MAX_COMMENT_DEPTH = 5
MAX_TITLE_LENGTH = 200
FLAG_THRESHOLD = 3
DEFAULT_POST_LIMIT = 100
SORT_FIELD_PATTERN = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_.]*$")


class PostCreate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    isAnonymous: bool = False


class CommentCreate(BaseModel):
    content: Optional[str] = None
    parentCommentId: Optional[str] = None
    isAnonymous: bool = False


class ReportRequest(BaseModel):
    reason: Optional[str] = None


def parse_sort(sort: Optional[str]) -> List[tuple]:
    """Turn ``"-createdAt,title"`` into a pymongo sort list."""
    sort_keys = []
    for part in (sort or "-createdAt").split(","):
        part = part.strip()
        if not part:
            continue
        if not SORT_FIELD_PATTERN.match(part):
            raise ValidationError(f"Invalid sort field: {part}")
        if part.startswith("-"):
            sort_keys.append((part[1:], -1))
        else:
            sort_keys.append((part, 1))
    return sort_keys or [("createdAt", -1)]


def validate_post(payload: PostCreate) -> List[str]:
    errors = []
    if not payload.title or not payload.title.strip():
        errors.append("Title is required")
    elif len(payload.title) > MAX_TITLE_LENGTH:
        errors.append(f"Title must be less than {MAX_TITLE_LENGTH} characters")
    if not payload.content or not payload.content.strip():
        errors.append("Content is required")
    return errors


async def populate_authors(
    db: AsyncIOMotorDatabase,
    docs: List[Dict[str, Any]],
    fields: tuple = ("firstName", "lastName")
) -> List[Dict[str, Any]]:
    """Replace ``userId`` references with a small author document."""
    user_ids = {doc["userId"] for doc in docs if isinstance(doc.get("userId"), ObjectId)}
    if not user_ids:
        return docs
    projection = {field: 1 for field in fields}
    authors = {
        user["_id"]: user
        async for user in db.users.find({"_id": {"$in": list(user_ids)}}, projection)
    }
    for doc in docs:
        author = authors.get(doc.get("userId"))
        if author is not None:
            doc["userId"] = author
    return docs


class ForumService:
    """Forum operations for members and visitors"""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        broadcaster: Optional[RealtimeBroadcaster] = None
    ):
        self.db = db
        self.posts = db.forum_posts
        self.comments = db.forum_comments
        self.reactions = db.forum_reactions
        self.broadcaster = broadcaster

    async def _get_post(self, post_id: str) -> Dict[str, Any]:
        post = await self.posts.find_one({"_id": to_object_id(post_id)})
        if not post:
            raise NotFoundError("Post", post_id)
        return post

    async def _present(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        await populate_authors(self.db, docs)
        return [serialize_document(doc) for doc in docs]

    async def list_posts(
        self,
        tag: Optional[str] = None,
        q: Optional[str] = None,
        category: Optional[str] = None,
        sort: Optional[str] = None,
        limit: int = DEFAULT_POST_LIMIT
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"deletedAt": None}
        if tag:
            query["tags"] = tag.lower()
        if category and category != "all":
            query["category"] = category
        if q:
            pattern = re.compile(re.escape(q), re.IGNORECASE)
            query["$or"] = [{"title": pattern}, {"content": pattern}]

        cursor = self.posts.find(query).sort(parse_sort(sort))
        if limit and limit > 0:
            cursor = cursor.limit(limit)
        return await self._present([post async for post in cursor])

    async def get_post(self, post_id: str) -> Dict[str, Any]:
        """Fetch a post and count the view"""
        post = await self.posts.find_one_and_update(
            {"_id": to_object_id(post_id)},
            {"$inc": {"views": 1}},
            return_document=ReturnDocument.AFTER
        )
        if not post:
            raise NotFoundError("Post", post_id)
        return (await self._present([post]))[0]

    async def create_post(self, user_id: str, payload: PostCreate) -> Dict[str, Any]:
        errors = validate_post(payload)
        if errors:
            raise ValidationError(errors=errors)

        now = datetime.utcnow()
        post = {
            "userId": to_object_id(user_id),
            "title": payload.title.strip(),
            "content": payload.content,
            "category": payload.category.strip() if payload.category else None,
            "tags": [t.strip().lower() for t in payload.tags if t.strip()],
            "isAnonymous": payload.isAnonymous,
            "isPinned": False,
            "views": 0,
            "likesCount": 0,
            "commentsCount": 0,
            "isModerated": False,
            "isFlagged": False,
            "reportCount": 0,
            "reports": [],
            "deletedAt": None,
            "createdAt": now,
            "updatedAt": now,
        }
        result = await self.posts.insert_one(post)
        post["_id"] = result.inserted_id
        presented = (await self._present([post]))[0]

        if self.broadcaster:
            await self.broadcaster.forum_new_post(presented)
        logger.info(f"Forum post created: {result.inserted_id}")
        return presented

    async def toggle_post_like(self, post_id: str, user_id: str) -> Dict[str, Any]:
        post = await self._get_post(post_id)
        result = await self._toggle_like(self.posts, "postId", post["_id"], user_id)

        if self.broadcaster:
            await self.broadcaster.forum_post_update(str(post["_id"]), {"likesCount": result["likesCount"]})
        return result

    async def toggle_comment_like(self, comment_id: str, user_id: str) -> Dict[str, Any]:
        comment = await self.comments.find_one({"_id": to_object_id(comment_id)})
        if not comment:
            raise NotFoundError("Comment", comment_id)
        return await self._toggle_like(self.comments, "commentId", comment["_id"], user_id)

    async def _toggle_like(self, collection, target_field: str, target_id: ObjectId, user_id: str) -> Dict[str, Any]:
        """Flip the caller's like on a post or comment and return the new count."""
        owner = {target_field: target_id, "userId": to_object_id(user_id), "type": "like"}
        existing = await self.reactions.find_one(owner)

        if existing:
            await self.reactions.delete_one({"_id": existing["_id"]})
            doc = await collection.find_one_and_update(
                {"_id": target_id, "likesCount": {"$gt": 0}},
                {"$inc": {"likesCount": -1}},
                return_document=ReturnDocument.AFTER
            )
            if doc is None:
                doc = await collection.find_one({"_id": target_id})
            liked = False
        else:
            await self.reactions.insert_one({**owner, "createdAt": datetime.utcnow()})
            doc = await collection.find_one_and_update(
                {"_id": target_id},
                {"$inc": {"likesCount": 1}},
                return_document=ReturnDocument.AFTER
            )
            liked = True

        return {"liked": liked, "likesCount": (doc or {}).get("likesCount", 0)}

    async def report_post(self, post_id: str, user_id: str, reason: Optional[str] = None):
        """A user may report a post once; three reports flag it for moderators."""
        post = await self._get_post(post_id)
        reporter = to_object_id(user_id)
        if any(report.get("userId") == reporter for report in post.get("reports", [])):
            raise ValidationError("You have already reported this post")

        updated = await self.posts.find_one_and_update(
            {"_id": post["_id"], "reports.userId": {"$ne": reporter}},
            {
                "$push": {"reports": {
                    "userId": reporter,
                    "reason": reason or "No reason provided",
                    "timestamp": datetime.utcnow(),
                }},
                "$inc": {"reportCount": 1},
            },
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise ValidationError("You have already reported this post")

        if updated.get("reportCount", 0) >= FLAG_THRESHOLD and not updated.get("isFlagged"):
            await self.posts.update_one({"_id": post["_id"]}, {"$set": {"isFlagged": True}})
            logger.warning(f"Forum post {post_id} flagged after {updated['reportCount']} reports")

    async def add_comment(self, post_id: str, user_id: str, payload: CommentCreate) -> Dict[str, Any]:
        if not payload.content or not payload.content.strip():
            raise ValidationError(errors=["Comment content is required"])

        post_oid = to_object_id(post_id)
        depth = 0
        parent_oid = None
        if payload.parentCommentId:
            parent_oid = to_object_id(payload.parentCommentId)
            parent = await self.comments.find_one({"_id": parent_oid})
            if not parent:
                raise NotFoundError("Parent comment", payload.parentCommentId)
            depth = parent.get("depth", 0) + 1
            if depth > MAX_COMMENT_DEPTH:
                raise ValidationError("Maximum reply depth exceeded")
            await self.comments.update_one({"_id": parent_oid}, {"$inc": {"repliesCount": 1}})

        now = datetime.utcnow()
        comment = {
            "postId": post_oid,
            "userId": to_object_id(user_id),
            "content": payload.content.strip(),
            "parentCommentId": parent_oid,
            "depth": depth,
            "isAnonymous": payload.isAnonymous,
            "likesCount": 0,
            "repliesCount": 0,
            "isDeleted": False,
            "createdAt": now,
            "updatedAt": now,
        }
        result = await self.comments.insert_one(comment)
        comment["_id"] = result.inserted_id

        await self.posts.update_one({"_id": post_oid}, {"$inc": {"commentsCount": 1}})
        return (await self._present([comment]))[0]

    async def list_comments(self, post_id: str, parent_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Top-level comments, or the direct replies to ``parent_id``"""
        query: Dict[str, Any] = {"postId": to_object_id(post_id), "isDeleted": False}
        if parent_id and parent_id != "null":
            query["parentCommentId"] = to_object_id(parent_id)
        else:
            query["parentCommentId"] = None

        cursor = self.comments.find(query).sort("createdAt", 1)
        return await self._present([comment async for comment in cursor])
