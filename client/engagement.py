"""
Realtime engagement sync for resource lists

The server pushes full counter snapshots (``resource:viewUpdate`` and
``resource:likeUpdate``) to the ``resources`` room. ``ResourceListState``
merges each snapshot into the matching list entries by ``_id`` and touches
only the named counter; ``EngagementSync`` wires it to a Socket.IO client.
"""

from typing import Any, Dict, Iterable, List, Optional

import socketio

from common.logger import get_logger

logger = get_logger(__name__)

VIEW_UPDATE = "resource:viewUpdate"
LIKE_UPDATE = "resource:likeUpdate"
JOIN_EVENT = "resources:join"
LEAVE_EVENT = "resources:leave"

GROUPS = ("videos", "audios", "articles")


class ResourceListState:
    """Local copy of the resource lists a view renders"""

    def __init__(self, groups: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.groups: Dict[str, List[Dict[str, Any]]] = {name: [] for name in GROUPS}
        self.search_results: List[Dict[str, Any]] = []
        if groups:
            self.load(groups)

    def load(self, groups: Dict[str, List[Dict[str, Any]]]):
        """Replace list contents with a server response (``/resources/all`` or ``/featured``)"""
        for name in GROUPS:
            self.groups[name] = [dict(item) for item in groups.get(name) or []]

    def set_search_results(self, results: Iterable[Dict[str, Any]]):
        self.search_results = [dict(item) for item in results]

    def _entries(self):
        for items in self.groups.values():
            yield from items
        yield from self.search_results

    def find(self, resource_id: str) -> List[Dict[str, Any]]:
        return [item for item in self._entries() if item.get("_id") == resource_id]

    def _set_counter(self, resource_id: str, field: str, value: int) -> int:
        matched = 0
        for item in self._entries():
            if item.get("_id") == resource_id:
                item[field] = value
                matched += 1
        return matched

    def apply_view_update(self, event: Dict[str, Any]) -> int:
        """Apply a ``{resourceId, viewCount}`` snapshot. Returns the number of entries updated."""
        if "resourceId" not in event or "viewCount" not in event:
            logger.debug(f"Ignoring malformed view update: {event}")
            return 0
        return self._set_counter(event["resourceId"], "viewCount", event["viewCount"])

    def apply_like_update(self, event: Dict[str, Any]) -> int:
        """Apply a ``{resourceId, helpfulCount}`` snapshot. Returns the number of entries updated."""
        if "resourceId" not in event or "helpfulCount" not in event:
            logger.debug(f"Ignoring malformed like update: {event}")
            return 0
        return self._set_counter(event["resourceId"], "helpfulCount", event["helpfulCount"])


class EngagementSync:
    """
    Subscribes a ``ResourceListState`` to the realtime channel

    Args:
        url: server root the Socket.IO endpoint is mounted on
        state: list state to merge snapshots into
        client: optional ``socketio.AsyncClient`` (created when omitted)
    """

    def __init__(
        self,
        url: str,
        state: ResourceListState,
        client: Optional[socketio.AsyncClient] = None
    ):
        self.url = url
        self.state = state
        self.client = client or socketio.AsyncClient(reconnection=True)
        self.client.on(VIEW_UPDATE, self.on_view_update)
        self.client.on(LIKE_UPDATE, self.on_like_update)
        self.client.on("connect", self.on_connect)

    async def on_connect(self):
        # Rejoin on every (re)connect; room membership does not survive a reconnect
        await self.client.emit(JOIN_EVENT)

    async def on_view_update(self, data: Dict[str, Any]):
        self.state.apply_view_update(data)

    async def on_like_update(self, data: Dict[str, Any]):
        self.state.apply_like_update(data)

    async def start(self):
        logger.info(f"Connecting to realtime channel at {self.url}")
        await self.client.connect(self.url, transports=["websocket", "polling"])

    async def stop(self):
        if self.client.connected:
            await self.client.emit(LEAVE_EVENT)
            await self.client.disconnect()
        logger.info("Realtime channel closed")
