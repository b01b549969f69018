"""
Admin dashboard service: user lookup and forum moderation
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from common.logger import get_logger
from common.exceptions import NotFoundError
from common.database import to_object_id, serialize_document
from services.forum import populate_authors
from services.realtime import RealtimeBroadcaster

logger = get_logger(__name__)

DEFAULT_USER_LIMIT = 20
DEFAULT_ADMIN_POST_LIMIT = 1000


class AdminService:
    """Moderation operations; callers must already hold the admin role"""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        broadcaster: Optional[RealtimeBroadcaster] = None
    ):
        self.db = db
        self.posts = db.forum_posts
        self.broadcaster = broadcaster

    async def list_users(self, q: Optional[str] = None, limit: int = DEFAULT_USER_LIMIT) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if q:
            query["email"] = re.compile(re.escape(q), re.IGNORECASE)
        cursor = self.db.users.find(query, {"passwordHash": 0}).limit(max(1, limit))
        return [serialize_document(user) async for user in cursor]

    async def _populate_reporters(self, posts: List[Dict[str, Any]]):
        reporter_ids = {
            report["userId"]
            for post in posts
            for report in post.get("reports", [])
            if report.get("userId") is not None
        }
        if not reporter_ids:
            return
        users = {
            user["_id"]: user
            async for user in self.db.users.find(
                {"_id": {"$in": list(reporter_ids)}},
                {"firstName": 1, "lastName": 1, "email": 1}
            )
        }
        for post in posts:
            for report in post.get("reports", []):
                if report.get("userId") in users:
                    report["userId"] = users[report["userId"]]

    async def reported_posts(self) -> List[Dict[str, Any]]:
        """Posts with at least one report, most reported first"""
        cursor = self.posts.find({"reportCount": {"$gt": 0}}).sort([("reportCount", -1), ("createdAt", -1)])
        posts = [post async for post in cursor]
        await populate_authors(self.db, posts)
        await self._populate_reporters(posts)
        return [serialize_document(post) for post in posts]

    async def all_posts(
        self,
        limit: int = DEFAULT_ADMIN_POST_LIMIT,
        skip: int = 0,
        search: Optional[str] = None,
        category: Optional[str] = None
    ) -> Dict[str, Any]:
        """Every post (deleted or not) with paging totals"""
        query: Dict[str, Any] = {}
        if search:
            pattern = re.compile(re.escape(search), re.IGNORECASE)
            query["$or"] = [{"title": pattern}, {"content": pattern}]
        if category and category != "all":
            query["category"] = category

        skip = max(0, skip)
        cursor = self.posts.find(query).sort("createdAt", -1).skip(skip).limit(max(1, limit))
        posts = [post async for post in cursor]
        await populate_authors(self.db, posts, fields=("firstName", "lastName", "email"))
        total = await self.posts.count_documents(query)

        return {
            "posts": [serialize_document(post) for post in posts],
            "total": total,
            "hasMore": skip + len(posts) < total,
        }

    async def delete_post(self, post_id: str):
        """Remove a post together with its comments and reactions"""
        oid = to_object_id(post_id)
        if not await self.posts.find_one({"_id": oid}, {"_id": 1}):
            raise NotFoundError("Post", post_id)

        comment_ids = [c["_id"] async for c in self.db.forum_comments.find({"postId": oid}, {"_id": 1})]
        await self.db.forum_comments.delete_many({"postId": oid})
        await self.db.forum_reactions.delete_many({"postId": oid})
        if comment_ids:
            await self.db.forum_reactions.delete_many({"commentId": {"$in": comment_ids}})
        await self.posts.delete_one({"_id": oid})

        if self.broadcaster:
            await self.broadcaster.forum_post_delete(str(oid))
        logger.info(f"Admin deleted forum post {post_id} and {len(comment_ids)} comments")

    async def dismiss_reports(self, post_id: str) -> Dict[str, Any]:
        post = await self.posts.find_one_and_update(
            {"_id": to_object_id(post_id)},
            {"$set": {"reports": [], "reportCount": 0, "isFlagged": False, "updatedAt": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER
        )
        if not post:
            raise NotFoundError("Post", post_id)
        return serialize_document(post)

    async def toggle_pin(self, post_id: str) -> Dict[str, Any]:
        oid = to_object_id(post_id)
        post = await self.posts.find_one({"_id": oid}, {"isPinned": 1})
        if not post:
            raise NotFoundError("Post", post_id)

        pinned = not post.get("isPinned", False)
        updated = await self.posts.find_one_and_update(
            {"_id": oid},
            {"$set": {"isPinned": pinned, "updatedAt": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER
        )
        if self.broadcaster:
            await self.broadcaster.forum_post_update(str(oid), {"isPinned": pinned})
        return serialize_document(updated)
