"""Supabase-backed message store.

Rows live in a ``messages`` table (``id``, ``user_id``, ``role``, ``content``,
``metadata``, ``created_at``). New rows are pushed back through Supabase
Realtime ``postgres_changes`` INSERT events filtered by ``user_id``.
"""

from __future__ import annotations

import logging
from typing import Any

from supabase import AsyncClient, acreate_client

from fliza.chat.models import Message, MessageRole

from .base import InsertCallback, MessageStore, Subscription

logger = logging.getLogger(__name__)


def _record_from_payload(payload: Any) -> dict | None:
    """Locate the inserted row in a realtime payload.

    Realtime client versions disagree on where the row sits, so check the
    known spots in order.
    """
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("record"), dict):
        return data["record"]
    for key in ("record", "new"):
        if isinstance(payload.get(key), dict):
            return payload[key]
    return None


class SupabaseMessageStore(MessageStore):
    """Message store on a hosted Supabase project."""

    def __init__(self, client: AsyncClient, table: str = "messages", schema: str = "public"):
        """Initialize with a connected client.

        Args:
            client: Supabase async client.
            table: Message table name.
            schema: Postgres schema for realtime filters.
        """
        self.client = client
        self.table = table
        self.schema = schema

    @classmethod
    async def connect(cls, url: str, key: str, table: str = "messages") -> SupabaseMessageStore:
        client = await acreate_client(url, key)
        return cls(client, table=table)

    @classmethod
    async def from_settings(cls, settings, privileged: bool = False) -> SupabaseMessageStore:
        """Connect using settings.

        Args:
            settings: Application settings.
            privileged: Use the service-role key (bypasses row-level security)
                when one is configured. Only the server-side reply writer
                should ask for this.
        """
        key = settings.supabase_anon_key
        if privileged and settings.supabase_service_role_key:
            key = settings.supabase_service_role_key
        return await cls.connect(settings.supabase_url, key, table=settings.messages_table)

    async def insert(
        self,
        user_id: str,
        role: MessageRole,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        row = {
            "user_id": user_id,
            "role": MessageRole(role).value,
            "content": content,
            "metadata": metadata or {},
        }
        response = await self.client.table(self.table).insert(row).execute()
        if not response.data:
            raise RuntimeError(f"Insert into {self.table} returned no row")
        return Message.from_db_row(response.data[0])

    async def query_history(self, user_id: str) -> list[Message]:
        response = await (
            self.client.table(self.table)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=False)
            .execute()
        )
        return [Message.from_db_row(row) for row in response.data or []]

    async def subscribe_inserts(self, user_id: str, on_insert: InsertCallback) -> Subscription:
        channel = self.client.channel(f"chat_updates:{user_id}")

        def _handle(payload: Any) -> None:
            record = _record_from_payload(payload)
            if record is None:
                logger.warning("Realtime payload without a row for %s", user_id)
                return
            try:
                message = Message.from_db_row(record)
            except (KeyError, ValueError) as e:
                logger.warning("Skipping malformed realtime row for %s: %s", user_id, e)
                return
            on_insert(message)

        channel.on_postgres_changes(
            "INSERT",
            schema=self.schema,
            table=self.table,
            filter=f"user_id=eq.{user_id}",
            callback=_handle,
        )
        await channel.subscribe()
        logger.info("Subscribed to message inserts for %s", user_id)

        async def _close() -> None:
            await self.client.remove_channel(channel)

        return Subscription(user_id=user_id, _close=_close)

    async def aclose(self) -> None:
        """Drop every realtime channel; the client closes its socket once none remain."""
        await self.client.remove_all_channels()
        logger.debug("Closed realtime connection for %s", self.table)
