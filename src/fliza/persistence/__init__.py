"""Durable message storage with realtime insert push.

Usage:
    from fliza.persistence import MemoryMessageStore, PersistenceAdapter

    adapter = PersistenceAdapter(MemoryMessageStore())
    row = await adapter.insert("user-1", MessageRole.USER, "hello")
    history = await adapter.query_history("user-1")

``SupabaseMessageStore`` lives in ``fliza.persistence.supabase_store`` and is
imported only where a hosted store is configured.
"""

from .adapter import PersistenceAdapter
from .base import InsertCallback, MemoryMessageStore, MessageStore, Subscription

__all__ = [
    "PersistenceAdapter",
    "InsertCallback",
    "MemoryMessageStore",
    "MessageStore",
    "Subscription",
]
