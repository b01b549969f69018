"""
Optimistic like/unlike toggle for resources

The liked-set flips and is persisted before the server answers. Each toggle
is tracked as a ``LikeTransition`` that starts ``PENDING`` and ends either
``CONFIRMED`` (server counter merged into list state) or ``ROLLED_BACK``
(membership and persistence restored, error re-raised).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from common.logger import get_logger
from client.api_client import ZenlyAPIClient
from client.engagement import ResourceListState

logger = get_logger(__name__)


class LikeState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass
class LikeTransition:
    resource_id: str
    liked: bool
    state: LikeState = LikeState.PENDING
    helpful_count: Optional[int] = None
    error: Optional[Exception] = None


class LikeToggler:
    """Toggles helpful marks through the API client"""

    def __init__(self, client: ZenlyAPIClient, state: Optional[ResourceListState] = None):
        self.client = client
        self.session = client.session
        self.state = state
        self.history: List[LikeTransition] = []

    def is_liked(self, resource_id: str) -> bool:
        return self.session.is_liked(resource_id)

    async def toggle(self, resource_id: str) -> LikeTransition:
        """
        Flip the liked mark for a resource.

        Raises:
            APIError: the server rejected the change (the flip has been undone)
        """
        was_liked = self.session.is_liked(resource_id)
        transition = LikeTransition(resource_id=resource_id, liked=not was_liked)
        self.history.append(transition)

        self.session.set_liked(resource_id, transition.liked)
        action = "like" if transition.liked else "unlike"

        try:
            result = await self.client.resources.mark_helpful(resource_id, action)
        except Exception as e:
            self.session.set_liked(resource_id, was_liked)
            transition.state = LikeState.ROLLED_BACK
            transition.error = e
            logger.warning(f"Rolled back {action} for resource {resource_id}: {e}")
            raise

        data: Dict[str, Any] = result.get("data") or {}
        transition.helpful_count = data.get("helpfulCount")
        if self.state is not None and transition.helpful_count is not None:
            self.state.apply_like_update({"resourceId": resource_id, "helpfulCount": transition.helpful_count})
        transition.state = LikeState.CONFIRMED
        return transition
