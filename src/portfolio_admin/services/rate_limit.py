"""Fixed-window rate limiting.

Each named policy counts requests per key inside a fixed window. The first
request for a key opens a window of ``window_seconds``; later requests in the
same window increment the counter, and once it exceeds ``max_requests`` the
request is rejected until the window resets.

Counters live in a :class:`RateLimitStore`. The default in-memory store is
single-process only: several server instances do not share counts unless
they are configured with the Redis store.
"""

from __future__ import annotations

import json
import math
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from threading import Lock
from typing import Any, Protocol

import redis
from starlette.requests import Request

from portfolio_admin.core.errors import RateLimited
from portfolio_admin.core.settings import Settings

KeyGenerator = Callable[[Request], str]
Clock = Callable[[], float]

UNKNOWN_CLIENT = "unknown"
ONE_MINUTE = 60.0


@dataclass
class RateLimitEntry:
    """Counter state for one key."""

    count: int
    reset_time: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request against a policy."""

    allowed: bool
    limit: int
    remaining: int
    reset_time: float
    retry_after: int

    def headers(self) -> dict[str, str]:
        """Return the throttling headers sent with a 429 response."""
        reset_at = datetime.fromtimestamp(self.reset_time, UTC)
        return {
            "Retry-After": str(self.retry_after),
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": reset_at.isoformat(timespec="milliseconds").replace(
                "+00:00", "Z"
            ),
        }


class RateLimitStore(Protocol):
    """Storage backend for rate-limit counters."""

    def get(self, key: str) -> RateLimitEntry | None: ...

    def set(self, key: str, entry: RateLimitEntry) -> None: ...

    def sweep_expired(self, now: float) -> None: ...

    def clear(self) -> None: ...


class InMemoryRateLimitStore:
    """Process-local counter map guarded by a lock."""

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = Lock()

    def get(self, key: str) -> RateLimitEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return RateLimitEntry(entry.count, entry.reset_time)

    def set(self, key: str, entry: RateLimitEntry) -> None:
        with self._lock:
            self._entries[key] = RateLimitEntry(entry.count, entry.reset_time)

    def sweep_expired(self, now: float) -> None:
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.reset_time < now]
            for key in expired:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisRateLimitStore:
    """Counter map shared through Redis.

    Entries are stored as JSON with a TTL equal to the remaining window, so
    Redis evicts expired counters itself and :meth:`sweep_expired` is a no-op.
    The get/set pair is not atomic across instances; concurrent requests from
    the same key on different instances may under-count by a few requests.
    """

    def __init__(self, client: Any, *, prefix: str = "ratelimit", clock: Clock = time.time) -> None:
        self._redis = client
        self._prefix = prefix
        self._clock = clock

    @classmethod
    def from_url(cls, url: str, *, prefix: str = "ratelimit") -> "RedisRateLimitStore":
        return cls(redis.from_url(url, decode_responses=True), prefix=prefix)

    def _name(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def get(self, key: str) -> RateLimitEntry | None:
        raw = self._redis.get(self._name(key))
        if raw is None:
            return None
        data = json.loads(raw)
        return RateLimitEntry(count=int(data["count"]), reset_time=float(data["reset_time"]))

    def set(self, key: str, entry: RateLimitEntry) -> None:
        ttl_ms = max(1, int((entry.reset_time - self._clock()) * 1000))
        payload = json.dumps({"count": entry.count, "reset_time": entry.reset_time})
        self._redis.set(self._name(key), payload, px=ttl_ms)

    def sweep_expired(self, now: float) -> None:
        return None

    def clear(self) -> None:
        for name in self._redis.scan_iter(match=f"{self._prefix}:*"):
            self._redis.delete(name)


def client_address(request: Request) -> str:
    """Return the first ``X-Forwarded-For`` entry, or ``"unknown"``."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return UNKNOWN_CLIENT


def address_key(request: Request) -> str:
    """Key requests by client address only."""
    return client_address(request)


def address_and_path_key(request: Request) -> str:
    """Key requests by client address and path.

    Used outside production so that exhausting one endpoint while testing
    does not lock out every other endpoint.
    """
    return f"{client_address(request)}:{request.url.path}"


def default_key_generator(settings: Settings) -> KeyGenerator:
    """Return the key generator appropriate for the environment."""
    return address_key if settings.is_production else address_and_path_key


@dataclass(frozen=True)
class RateLimitPolicy:
    """Named rate-limit configuration."""

    name: str
    window_seconds: float
    max_requests: int
    key_generator: KeyGenerator = address_key


class RateLimiter:
    """Apply one policy to incoming requests using a pluggable store."""

    def __init__(
        self,
        policy: RateLimitPolicy,
        store: RateLimitStore | None = None,
        *,
        clock: Clock = time.time,
    ) -> None:
        self.policy = policy
        self.store: RateLimitStore = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock
        self._lock = Lock()

    def hit(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and return the decision."""
        policy = self.policy
        with self._lock:
            now = self._clock()
            self.store.sweep_expired(now)

            entry = self.store.get(key)
            if entry is None or entry.reset_time < now:
                entry = RateLimitEntry(count=1, reset_time=now + policy.window_seconds)
                self.store.set(key, entry)
            else:
                entry.count += 1
                self.store.set(key, entry)

        allowed = entry.count <= policy.max_requests
        retry_after = 0 if allowed else max(0, math.ceil(entry.reset_time - now))
        return RateLimitDecision(
            allowed=allowed,
            limit=policy.max_requests,
            remaining=max(0, policy.max_requests - entry.count),
            reset_time=entry.reset_time,
            retry_after=retry_after,
        )

    def check(self, request: Request) -> RateLimitDecision:
        """Count ``request`` and raise :class:`RateLimited` when over the limit."""
        decision = self.hit(self.policy.key_generator(request))
        if not decision.allowed:
            raise RateLimited(decision)
        return decision

    def reset(self) -> None:
        """Drop every counter held by this limiter."""
        with self._lock:
            self.store.clear()


class RateLimiterRegistry:
    """The named policies used by the application: strict, standard and auth."""

    def __init__(self, limiters: dict[str, RateLimiter]) -> None:
        self._limiters = dict(limiters)

    def __getitem__(self, name: str) -> RateLimiter:
        try:
            return self._limiters[name]
        except KeyError:
            raise KeyError(f"Unknown rate-limit policy: {name}") from None

    def __iter__(self) -> Iterator[RateLimiter]:
        return iter(self._limiters.values())

    @property
    def names(self) -> list[str]:
        return list(self._limiters)

    def clear(self) -> None:
        """Reset every policy's counters."""
        for limiter in self:
            limiter.reset()


def build_policies(settings: Settings) -> list[RateLimitPolicy]:
    """Return the strict, standard and auth policies for ``settings``."""
    key_generator = default_key_generator(settings)
    # Login flows get more headroom outside production.
    auth_limit = 10 if settings.is_production else 30
    return [
        RateLimitPolicy("strict", ONE_MINUTE, 10, key_generator),
        RateLimitPolicy("standard", ONE_MINUTE, 100, key_generator),
        RateLimitPolicy("auth", ONE_MINUTE, auth_limit, key_generator),
    ]


def build_rate_limiters(settings: Settings, *, clock: Clock = time.time) -> RateLimiterRegistry:
    """Create one limiter per policy, each with its own store namespace."""
    limiters: dict[str, RateLimiter] = {}
    for policy in build_policies(settings):
        store: RateLimitStore
        if settings.rate_limit_backend == "redis":
            store = RedisRateLimitStore.from_url(
                settings.redis_url, prefix=f"ratelimit:{policy.name}"
            )
        else:
            store = InMemoryRateLimitStore()
        limiters[policy.name] = RateLimiter(policy, store, clock=clock)
    return RateLimiterRegistry(limiters)
