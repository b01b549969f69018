"""
Client session state

``ClientSession`` holds the credential pair, the signed-in user and the
local liked-resource set. Everything it holds is written through a
``SessionStore`` so a restarted client picks up where it left off.
"""

import json
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional, Set

from common.logger import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_KEY = "zenly_access_token"
REFRESH_TOKEN_KEY = "zenly_refresh_token"
USER_KEY = "zenly_user"
LIKED_RESOURCES_KEY = "likedResources"


class SessionStore(ABC):
    """Persistence boundary for session values (string keys, JSON values)"""

    @abstractmethod
    def get(self, key: str) -> Any:
        ...

    @abstractmethod
    def set(self, key: str, value: Any):
        ...

    @abstractmethod
    def delete(self, key: str):
        ...


class MemorySessionStore(SessionStore):
    """Keeps values for the lifetime of the process"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        return self.data.get(key)

    def set(self, key: str, value: Any):
        self.data[key] = value

    def delete(self, key: str):
        self.data.pop(key, None)


class FileSessionStore(SessionStore):
    """Stores values in a JSON file, rewritten on every change"""

    def __init__(self, path: str):
        self.path = path
        self.data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f) or {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return {}

    def _flush(self):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.data, f)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Any:
        return self.data.get(key)

    def set(self, key: str, value: Any):
        self.data[key] = value
        self._flush()

    def delete(self, key: str):
        if key in self.data:
            del self.data[key]
            self._flush()


class ClientSession:
    """Explicit session context shared by the API client and view state"""

    def __init__(self, store: Optional[SessionStore] = None):
        self.store = store or MemorySessionStore()

    # --- credentials ---

    @property
    def access_token(self) -> Optional[str]:
        return self.store.get(ACCESS_TOKEN_KEY)

    @property
    def refresh_token(self) -> Optional[str]:
        return self.store.get(REFRESH_TOKEN_KEY)

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self.store.get(USER_KEY)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def set_tokens(self, access_token: str, refresh_token: Optional[str] = None):
        """Store a new access token; the refresh token is kept unless replaced."""
        self.store.set(ACCESS_TOKEN_KEY, access_token)
        if refresh_token is not None:
            self.store.set(REFRESH_TOKEN_KEY, refresh_token)

    def set_user(self, user: Optional[Dict[str, Any]]):
        self.store.set(USER_KEY, user)

    def invalidate(self):
        """Forget tokens and user (forced logout). The liked set survives."""
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY):
            self.store.delete(key)

    # --- liked resources ---

    @property
    def liked_resources(self) -> Set[str]:
        return set(self.store.get(LIKED_RESOURCES_KEY) or [])

    def _save_liked(self, liked: Iterable[str]):
        self.store.set(LIKED_RESOURCES_KEY, sorted(liked))

    def is_liked(self, resource_id: str) -> bool:
        return resource_id in self.liked_resources

    def set_liked(self, resource_id: str, liked: bool):
        current = self.liked_resources
        if liked:
            current.add(resource_id)
        else:
            current.discard(resource_id)
        self._save_liked(current)
