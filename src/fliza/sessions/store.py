"""Session cache for remote agent conversations.

Maps a user id to the remote session handle issued by the agent backend so
consecutive messages reuse one session instead of creating a new one per send.

Provides:
- ``MemorySessionStore`` for single-process deployments (the default)
- ``RedisSessionStore`` for deployments with several API instances

Entries are stored with their expiry pulled forward by a safety margin so a
handle is never used just as it expires server-side.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Callable

logger = logging.getLogger(__name__)

_DEFAULT_SAFETY_MARGIN = 300.0  # 5 minutes


@dataclass
class SessionHandle:
    """A cached remote session."""

    user_id: str
    session_id: str
    expires_at: float  # epoch seconds, safety margin already applied

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class SessionStore(ABC):
    """Per-user session cache.

    Lookups and writes for different users are independent; implementations
    only need to be safe under concurrent access, not to coordinate users.
    """

    def __init__(
        self,
        safety_margin: float = _DEFAULT_SAFETY_MARGIN,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the store.

        Args:
            safety_margin: Seconds subtracted from each backend expiry.
            clock: Time source returning epoch seconds.
        """
        self.safety_margin = safety_margin
        self.clock = clock

    def _handle_for(self, user_id: str, session_id: str, expires_at: float) -> SessionHandle:
        return SessionHandle(
            user_id=user_id,
            session_id=session_id,
            expires_at=expires_at - self.safety_margin,
        )

    @abstractmethod
    async def get(self, user_id: str) -> str | None:
        """Return the cached session id, or None if absent or expired."""

    @abstractmethod
    async def put(self, user_id: str, session_id: str, expires_at: float) -> SessionHandle:
        """Cache a session; ``expires_at`` is the backend's expiry in epoch seconds."""

    @abstractmethod
    async def evict(self, user_id: str) -> bool:
        """Drop the user's entry. Returns True if one existed."""

    async def aclose(self) -> None:
        """Release connections held by the store."""


class MemorySessionStore(SessionStore):
    """Process-local session cache. Rebuilt from scratch on restart."""

    def __init__(
        self,
        safety_margin: float = _DEFAULT_SAFETY_MARGIN,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(safety_margin=safety_margin, clock=clock)
        self._entries: dict[str, SessionHandle] = {}
        self._lock = threading.Lock()

    async def get(self, user_id: str) -> str | None:
        with self._lock:
            handle = self._entries.get(user_id)
        if handle is None or handle.is_expired(self.clock()):
            return None
        return handle.session_id

    async def put(self, user_id: str, session_id: str, expires_at: float) -> SessionHandle:
        handle = self._handle_for(user_id, session_id, expires_at)
        with self._lock:
            self._entries[user_id] = handle
        logger.debug(
            "Cached session %s for %s until %.0f", session_id, user_id, handle.expires_at
        )
        return handle

    async def evict(self, user_id: str) -> bool:
        with self._lock:
            removed = self._entries.pop(user_id, None)
        if removed:
            logger.info("Evicted session %s for %s", removed.session_id, user_id)
        return removed is not None

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisSessionStore(SessionStore):
    """Shared session cache backed by Redis.

    Entries are JSON-encoded handles stored with a Redis TTL matching the
    margin-adjusted expiry, so stale handles disappear on their own.
    """

    def __init__(
        self,
        url: str | None = None,
        client=None,
        key_prefix: str = "fliza:session:",
        safety_margin: float = _DEFAULT_SAFETY_MARGIN,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the store.

        Args:
            url: Redis URL; ignored when ``client`` is given.
            client: An existing ``redis.asyncio.Redis`` client.
            key_prefix: Namespace for cache keys.
            safety_margin: Seconds subtracted from each backend expiry.
            clock: Time source returning epoch seconds.
        """
        super().__init__(safety_margin=safety_margin, clock=clock)
        if client is None:
            if not url:
                raise ValueError("RedisSessionStore needs a url or a client")
            import redis.asyncio as redis

            client = redis.from_url(url, decode_responses=True)
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, user_id: str) -> str:
        return f"{self.key_prefix}{user_id}"

    async def get(self, user_id: str) -> str | None:
        raw = await self.client.get(self._key(user_id))
        if not raw:
            return None
        handle = SessionHandle(**json.loads(raw))
        if handle.is_expired(self.clock()):
            return None
        return handle.session_id

    async def put(self, user_id: str, session_id: str, expires_at: float) -> SessionHandle:
        handle = self._handle_for(user_id, session_id, expires_at)
        ttl = int(handle.expires_at - self.clock())
        if ttl <= 0:
            # Already inside the safety margin; caching it would only cause a failed send.
            await self.client.delete(self._key(user_id))
            return handle
        await self.client.set(self._key(user_id), json.dumps(asdict(handle)), ex=ttl)
        return handle

    async def evict(self, user_id: str) -> bool:
        removed = await self.client.delete(self._key(user_id))
        if removed:
            logger.info("Evicted shared session for %s", user_id)
        return bool(removed)

    async def aclose(self) -> None:
        await self.client.aclose()


def create_session_store(settings) -> SessionStore:
    """Build the session store selected by settings."""
    margin = settings.session_safety_margin_seconds
    if settings.session_store == "redis":
        return RedisSessionStore(url=settings.redis_url, safety_margin=margin)
    return MemorySessionStore(safety_margin=margin)
