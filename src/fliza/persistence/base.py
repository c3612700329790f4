"""Message store interface and in-process implementation."""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from fliza.chat.models import Message, MessageRole, utcnow

logger = logging.getLogger(__name__)

InsertCallback = Callable[[Message], None]


@dataclass
class Subscription:
    """Handle for an insert-push subscription."""

    user_id: str
    _close: Callable[[], Awaitable[None]]
    active: bool = True

    async def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        await self._close()


class MessageStore(ABC):
    """Durable, append-only store of chat messages keyed by user."""

    @abstractmethod
    async def insert(
        self,
        user_id: str,
        role: MessageRole,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        """Append a row and return it with its durable id and timestamp."""

    @abstractmethod
    async def query_history(self, user_id: str) -> list[Message]:
        """Return all rows for the user ordered ascending by creation time."""

    @abstractmethod
    async def subscribe_inserts(self, user_id: str, on_insert: InsertCallback) -> Subscription:
        """Register a callback invoked once per new row for the user."""

    async def aclose(self) -> None:
        """Release connections held by the store."""


class MemoryMessageStore(MessageStore):
    """In-process message store with event-loop push delivery.

    Push callbacks are scheduled on the running loop rather than called
    inline, so they race with the caller exactly like a realtime feed does.
    """

    def __init__(self) -> None:
        self._rows: list[Message] = []
        self._subscribers: dict[str, list[InsertCallback]] = {}
        self._lock = threading.Lock()

    async def insert(
        self,
        user_id: str,
        role: MessageRole,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        row = Message(
            id=str(uuid.uuid4()),
            content=content,
            role=MessageRole(role),
            created_at=utcnow(),
            metadata=dict(metadata or {}),
            user_id=user_id,
        )
        with self._lock:
            self._rows.append(row)
            callbacks = list(self._subscribers.get(user_id, []))

        loop = asyncio.get_running_loop()
        for callback in callbacks:
            loop.call_soon(callback, row.model_copy(deep=True))
        return row.model_copy(deep=True)

    async def query_history(self, user_id: str) -> list[Message]:
        with self._lock:
            rows = [r.model_copy(deep=True) for r in self._rows if r.user_id == user_id]
        # sorted() is stable, so equal timestamps keep insertion order
        return sorted(rows, key=lambda r: r.created_at)

    async def subscribe_inserts(self, user_id: str, on_insert: InsertCallback) -> Subscription:
        with self._lock:
            self._subscribers.setdefault(user_id, []).append(on_insert)

        async def _close() -> None:
            with self._lock:
                callbacks = self._subscribers.get(user_id, [])
                if on_insert in callbacks:
                    callbacks.remove(on_insert)
                if not callbacks:
                    self._subscribers.pop(user_id, None)

        return Subscription(user_id=user_id, _close=_close)

    def subscriber_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(user_id, []))
