"""Persistence adapter used by the chat layer.

Wraps a MessageStore with the two rules the chat flow relies on: guests never
touch durable storage, and a failed write never blocks showing a reply.
"""

from __future__ import annotations

import logging
from typing import Any

from fliza.chat.models import Message, MessageRole
from fliza.errors import PersistenceWriteFailed
from fliza.identity import GUEST_PREFIX, is_guest

from .base import InsertCallback, MessageStore, Subscription

logger = logging.getLogger(__name__)


class PersistenceAdapter:
    """Guest-aware, failure-tolerant front for a MessageStore."""

    def __init__(self, store: MessageStore | None, guest_prefix: str = GUEST_PREFIX):
        """Initialize the adapter.

        Args:
            store: Backing message store. ``None`` disables persistence.
            guest_prefix: User ids with this prefix are never persisted.
        """
        self.store = store
        self.guest_prefix = guest_prefix

    @property
    def enabled(self) -> bool:
        return self.store is not None

    def is_guest(self, user_id: str) -> bool:
        return is_guest(user_id, self.guest_prefix)

    def _skips(self, user_id: str) -> bool:
        return self.store is None or self.is_guest(user_id)

    async def insert(
        self,
        user_id: str,
        role: MessageRole,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message | None:
        """Append a message for an authenticated user.

        Returns:
            The stored row, or None for guests, disabled persistence, or a
            failed write (which is logged, not raised).
        """
        if self._skips(user_id):
            return None
        try:
            return await self.store.insert(user_id, role, content, metadata)
        except Exception as e:
            error = PersistenceWriteFailed(
                f"Message write failed for {user_id}", details=str(e)
            )
            logger.error("%s: %s", error.message, error.details, exc_info=True)
            return None

    async def query_history(self, user_id: str) -> list[Message]:
        """Load the user's history, oldest first. Empty for guests or on failure."""
        if self._skips(user_id):
            return []
        try:
            return await self.store.query_history(user_id)
        except Exception as e:
            logger.error("History query failed for %s: %s", user_id, e, exc_info=True)
            return []

    async def subscribe_inserts(
        self, user_id: str, on_insert: InsertCallback
    ) -> Subscription | None:
        """Subscribe to new rows for the user. None for guests or on failure."""
        if self._skips(user_id):
            return None
        try:
            return await self.store.subscribe_inserts(user_id, on_insert)
        except Exception as e:
            logger.error("Realtime subscribe failed for %s: %s", user_id, e, exc_info=True)
            return None
