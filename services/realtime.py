"""
Realtime channel for Zenly Platform Service

A Socket.IO server mounted next to the REST app. Browsers join the
``resources`` room to receive engagement counter snapshots and the ``forum``
room to receive post events. Routes publish through ``RealtimeBroadcaster``.
"""

from typing import Any, Dict, Optional

import socketio

from common.config import get_settings
from common.logger import get_logger
from common.monitoring import record_broadcast, realtime_connections

settings = get_settings()
logger = get_logger(__name__)

RESOURCES_ROOM = "resources"
FORUM_ROOM = "forum"

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=settings.CORS_ORIGINS,
    logger=False,
    engineio_logger=False
)


@sio.event
async def connect(sid, environ, auth=None):
    realtime_connections.inc()
    logger.debug(f"Realtime client connected: {sid}")


@sio.event
async def disconnect(sid, reason=None):
    realtime_connections.dec()
    logger.debug(f"Realtime client disconnected: {sid}")


@sio.on("resources:join")
async def join_resources(sid, data=None):
    await sio.enter_room(sid, RESOURCES_ROOM)


@sio.on("resources:leave")
async def leave_resources(sid, data=None):
    await sio.leave_room(sid, RESOURCES_ROOM)


@sio.on("forum:join")
async def join_forum(sid, data=None):
    await sio.enter_room(sid, FORUM_ROOM)


@sio.on("forum:leave")
async def leave_forum(sid, data=None):
    await sio.leave_room(sid, FORUM_ROOM)


class RealtimeBroadcaster:
    """Publishes domain events to Socket.IO rooms"""

    def __init__(self, server: Optional[socketio.AsyncServer] = None):
        self.server = server or sio

    async def emit(self, event: str, data: Dict[str, Any], room: str):
        """Send one event to a room. Delivery failures are logged, not raised."""
        record_broadcast(event, room)
        try:
            await self.server.emit(event, data, room=room)
        except Exception as e:
            logger.error(f"Failed to broadcast {event} to {room}: {e}")

    async def resource_view_update(self, resource_id: str, view_count: int):
        await self.emit(
            "resource:viewUpdate",
            {"resourceId": resource_id, "viewCount": view_count},
            RESOURCES_ROOM
        )

    async def resource_like_update(self, resource_id: str, helpful_count: int, action: Optional[str]):
        await self.emit(
            "resource:likeUpdate",
            {"resourceId": resource_id, "helpfulCount": helpful_count, "action": action},
            RESOURCES_ROOM
        )

    async def forum_new_post(self, post: Dict[str, Any]):
        await self.emit("forum:newPost", post, FORUM_ROOM)

    async def forum_post_update(self, post_id: str, updates: Dict[str, Any]):
        await self.emit("forum:postUpdate", {"postId": post_id, "updates": updates}, FORUM_ROOM)

    async def forum_post_delete(self, post_id: str):
        await self.emit("forum:postDelete", {"postId": post_id}, FORUM_ROOM)


_broadcaster = RealtimeBroadcaster()


def get_broadcaster() -> RealtimeBroadcaster:
    """FastAPI dependency returning the process wide broadcaster"""
    return _broadcaster


def create_asgi_app(other_asgi_app):
    """Wrap the REST app so ``/socket.io`` is served by the realtime server"""
    return socketio.ASGIApp(sio, other_asgi_app=other_asgi_app)
