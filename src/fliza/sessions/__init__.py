"""Remote agent session cache."""

from .store import (
    MemorySessionStore,
    RedisSessionStore,
    SessionHandle,
    SessionStore,
    create_session_store,
)

__all__ = [
    "MemorySessionStore",
    "RedisSessionStore",
    "SessionHandle",
    "SessionStore",
    "create_session_store",
]
