"""
Fixed-window rate limiting for Zenly Platform Service

Policies are read from ``config/rate_limits.yaml``. Each request is counted
against a key built from the policy's key strategy; the first hit on a key
opens a window of ``window_seconds`` and the counter resets once it closes.
Counters live either in process memory or in Redis (shared across workers).
"""

import math
import time
import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from common.config import get_settings, get_rate_limit_config
from common.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

DEFAULT_MESSAGE = "Too many requests, please try again later."

KEY_STRATEGIES = ("ip", "user", "user_or_ip", "ip_resource", "user_or_ip_resource")


@dataclass(frozen=True)
class RateLimitPolicy:
    """A single named fixed-window policy"""
    name: str
    window_seconds: int
    max_requests: int
    key: str = "ip"
    message: str = DEFAULT_MESSAGE

    @classmethod
    def from_config(cls, name: str, raw: Dict) -> "RateLimitPolicy":
        if not raw:
            raise KeyError(f"Unknown rate limit policy: {name}")
        key = raw.get("key", "ip")
        if key not in KEY_STRATEGIES:
            raise ValueError(f"Policy {name} uses unknown key strategy '{key}'")
        return cls(
            name=name,
            window_seconds=int(raw["window_seconds"]),
            max_requests=int(raw["max_requests"]),
            key=key,
            message=raw.get("message", DEFAULT_MESSAGE),
        )

    def build_key(
        self,
        ip: Optional[str],
        user_id: Optional[str] = None,
        resource_id: Optional[str] = None
    ) -> str:
        """Compose the counter key for one request."""
        ip = ip or "unknown"
        if self.key == "ip":
            identity = f"ip:{ip}"
        elif self.key == "user":
            identity = f"user:{user_id}" if user_id else f"ip:{ip}"
        elif self.key == "user_or_ip":
            identity = f"user:{user_id}" if user_id else f"ip:{ip}"
        elif self.key == "ip_resource":
            identity = f"ip:{ip}:{resource_id}"
        else:
            base = f"user:{user_id}" if user_id else f"ip:{ip}"
            identity = f"{base}:{resource_id}"
        return f"rl:{self.name}:{identity}"

    @property
    def policy_header(self) -> str:
        return f"{self.max_requests};w={self.window_seconds}"


@dataclass
class RateLimitResult:
    """Outcome of counting one request against a policy"""
    policy: RateLimitPolicy
    count: int
    reset_after: int

    @property
    def allowed(self) -> bool:
        return self.count <= self.policy.max_requests

    @property
    def remaining(self) -> int:
        return max(0, self.policy.max_requests - self.count)

    def headers(self) -> Dict[str, str]:
        headers = {
            "RateLimit-Policy": self.policy.policy_header,
            "RateLimit-Limit": str(self.policy.max_requests),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_after)
        return headers


class MemoryFixedWindowStore:
    """
    Process local counters. ``clock`` is injectable for tests.

    Each key remembers when its own window closes. Closed windows are swept
    at most once per ``sweep_interval`` seconds, so memory follows the keys
    active in the current windows rather than every key seen today.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0):
        self.clock = clock
        self.sweep_interval = sweep_interval
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._next_sweep = clock() + sweep_interval
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    async def hit(self, key: str, window_seconds: int) -> Tuple[int, int]:
        """Count one hit. Returns (count in window, seconds until reset)."""
        async with self._lock:
            now = self.clock()
            if now >= self._next_sweep:
                self._sweep(now)
            expires_at, count = self._windows.get(key, (0.0, 0))
            if now >= expires_at:
                expires_at, count = now + window_seconds, 0
            count += 1
            self._windows[key] = (expires_at, count)
        return count, max(1, math.ceil(expires_at - now))

    def _sweep(self, now: float):
        expired = [k for k, (expires_at, _) in self._windows.items() if now >= expires_at]
        for k in expired:
            del self._windows[k]
        self._next_sweep = now + self.sweep_interval
        if expired:
            logger.debug(f"Dropped {len(expired)} expired rate limit windows")


class RedisFixedWindowStore:
    """Counters shared between workers through Redis INCR + EXPIRE"""

    def __init__(self, client):
        self.client = client

    async def hit(self, key: str, window_seconds: int) -> Tuple[int, int]:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.ttl(key)
            count, ttl = await pipe.execute()
        if count == 1 or ttl < 0:
            await self.client.expire(key, window_seconds)
            ttl = window_seconds
        return int(count), max(1, int(ttl))


class RateLimitService:
    """Resolves policies and counts hits against the configured store"""

    def __init__(self, store=None):
        self.store = store or MemoryFixedWindowStore()
        self._policies: Dict[str, RateLimitPolicy] = {}

    def get_policy(self, name: str) -> RateLimitPolicy:
        if name not in self._policies:
            self._policies[name] = RateLimitPolicy.from_config(
                name, get_rate_limit_config().get_policy(name)
            )
        return self._policies[name]

    def load_all(self):
        """Resolve every configured policy so a bad entry fails at startup."""
        for name in get_rate_limit_config().policy_names:
            self.get_policy(name)
        logger.info(f"Loaded {len(self._policies)} rate limit policies")

    async def hit(
        self,
        policy_name: str,
        ip: Optional[str],
        user_id: Optional[str] = None,
        resource_id: Optional[str] = None
    ) -> RateLimitResult:
        policy = self.get_policy(policy_name)
        key = policy.build_key(ip, user_id=user_id, resource_id=resource_id)
        count, reset_after = await self.store.hit(key, policy.window_seconds)
        result = RateLimitResult(policy=policy, count=count, reset_after=reset_after)
        if not result.allowed:
            logger.warning(
                f"Rate limit exceeded for policy '{policy_name}'",
                extra={"policy": policy_name, "rate_limit_key": key, "count": count}
            )
        return result


_rate_limit_service: Optional[RateLimitService] = None


def get_rate_limit_service() -> RateLimitService:
    """Return the process wide limiter (memory backed until configured)."""
    global _rate_limit_service
    if _rate_limit_service is None:
        _rate_limit_service = RateLimitService()
    return _rate_limit_service


def set_rate_limit_service(service: Optional[RateLimitService]):
    """Replace the limiter (startup wiring and tests)."""
    global _rate_limit_service
    _rate_limit_service = service


def configure_rate_limit_storage(redis_client=None):
    """Pick the counter store from settings; called from the lifespan."""
    if settings.RATE_LIMIT_STORAGE == "redis" and redis_client is not None:
        service = RateLimitService(RedisFixedWindowStore(redis_client))
        logger.info("Rate limit counters stored in Redis")
    else:
        if settings.RATE_LIMIT_STORAGE == "redis":
            logger.warning("Redis rate limit storage selected but Redis is not connected; using memory")
        service = RateLimitService()
        logger.info("Rate limit counters stored in process memory")
    service.load_all()
    set_rate_limit_service(service)
