"""Tests for the agent session cache."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from fliza.config import Settings
from fliza.sessions import (
    MemorySessionStore,
    RedisSessionStore,
    SessionHandle,
    create_session_store,
)


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestSessionHandle:
    """Tests for SessionHandle."""

    def test_not_expired_before_deadline(self):
        handle = SessionHandle(user_id="u1", session_id="s1", expires_at=100.0)
        assert not handle.is_expired(99.9)

    def test_expired_at_deadline(self):
        handle = SessionHandle(user_id="u1", session_id="s1", expires_at=100.0)
        assert handle.is_expired(100.0)
        assert handle.is_expired(150.0)


class TestMemorySessionStore:
    """Tests for MemorySessionStore."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self, clock):
        return MemorySessionStore(safety_margin=300, clock=clock)

    @pytest.mark.asyncio
    async def test_get_missing_user(self, store):
        """Unknown users have no session."""
        assert await store.get("nobody") is None

    @pytest.mark.asyncio
    async def test_put_applies_safety_margin(self, store, clock):
        """Stored expiry is the backend expiry minus the margin."""
        handle = await store.put("u1", "s1", clock.now + 3600)
        assert handle.expires_at == clock.now + 3300
        assert await store.get("u1") == "s1"

    @pytest.mark.asyncio
    async def test_expires_inside_margin(self, store, clock):
        """Handles are never returned once inside the safety margin."""
        await store.put("u1", "s1", clock.now + 3600)
        clock.advance(3299)
        assert await store.get("u1") == "s1"
        clock.advance(1)
        assert await store.get("u1") is None

    @pytest.mark.asyncio
    async def test_short_lived_session_never_returned(self, store, clock):
        """A session shorter than the margin is treated as already expired."""
        await store.put("u1", "s1", clock.now + 60)
        assert await store.get("u1") is None

    @pytest.mark.asyncio
    async def test_put_overwrites(self, store, clock):
        await store.put("u1", "s1", clock.now + 3600)
        await store.put("u1", "s2", clock.now + 3600)
        assert await store.get("u1") == "s2"
        assert store.size == 1

    @pytest.mark.asyncio
    async def test_users_are_independent(self, store, clock):
        await store.put("u1", "s1", clock.now + 3600)
        await store.put("u2", "s2", clock.now + 3600)
        assert await store.get("u1") == "s1"
        assert await store.get("u2") == "s2"

    @pytest.mark.asyncio
    async def test_evict(self, store, clock):
        await store.put("u1", "s1", clock.now + 3600)
        assert await store.evict("u1") is True
        assert await store.get("u1") is None
        assert await store.evict("u1") is False


class TestRedisSessionStore:
    """Tests for RedisSessionStore against a mocked client."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def redis_client(self):
        client = AsyncMock()
        client.get.return_value = None
        client.delete.return_value = 1
        return client

    @pytest.fixture
    def store(self, redis_client, clock):
        return RedisSessionStore(client=redis_client, safety_margin=300, clock=clock)

    def test_requires_url_or_client(self):
        with pytest.raises(ValueError):
            RedisSessionStore()

    @pytest.mark.asyncio
    async def test_put_sets_ttl(self, store, redis_client, clock):
        """TTL matches the margin-adjusted expiry."""
        await store.put("u1", "s1", clock.now + 3600)
        redis_client.set.assert_awaited_once()
        args, kwargs = redis_client.set.call_args
        assert args[0] == "fliza:session:u1"
        assert json.loads(args[1])["session_id"] == "s1"
        assert kwargs["ex"] == 3300

    @pytest.mark.asyncio
    async def test_put_inside_margin_deletes(self, store, redis_client, clock):
        await store.put("u1", "s1", clock.now + 100)
        redis_client.set.assert_not_awaited()
        redis_client.delete.assert_awaited_once_with("fliza:session:u1")

    @pytest.mark.asyncio
    async def test_get_returns_live_handle(self, store, redis_client, clock):
        redis_client.get.return_value = json.dumps(
            {"user_id": "u1", "session_id": "s1", "expires_at": clock.now + 10}
        )
        assert await store.get("u1") == "s1"

    @pytest.mark.asyncio
    async def test_get_ignores_expired_handle(self, store, redis_client, clock):
        redis_client.get.return_value = json.dumps(
            {"user_id": "u1", "session_id": "s1", "expires_at": clock.now - 1}
        )
        assert await store.get("u1") is None

    @pytest.mark.asyncio
    async def test_evict(self, store, redis_client):
        assert await store.evict("u1") is True
        redis_client.delete.return_value = 0
        assert await store.evict("u1") is False


class TestCreateSessionStore:
    """Tests for create_session_store()."""

    def test_default_is_memory(self):
        store = create_session_store(Settings(session_safety_margin_seconds=120))
        assert isinstance(store, MemorySessionStore)
        assert store.safety_margin == 120
