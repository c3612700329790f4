"""Client for the remote agent messaging API.

Delivering a message takes two calls: resolve a session for the user (reusing
the cached one when still valid, otherwise creating one) and then post the
message to that session in synchronous mode.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from fliza.chat.models import AgentReply
from fliza.errors import (
    SendFailed,
    SessionCreationFailed,
    SessionExpired,
    SessionStoreUnavailable,
)
from fliza.http import create_async_client
from fliza.sessions import SessionHandle, SessionStore

from .extraction import extract_agent_metadata, extract_reply_text

logger = logging.getLogger(__name__)

_DEFAULT_SESSION_TTL = 3600.0
# Epoch values above this are milliseconds.
_EPOCH_MS_THRESHOLD = 1e11


def compose_content(message: str, vision_context: str | None = None) -> str:
    """Prefix a message with the bracketed vision annotation when one is available."""
    if vision_context:
        return f"[VISION_CONTEXT: {vision_context}]\n\nUser: {message}"
    return message


def _is_expired_session_response(response: httpx.Response) -> bool:
    if response.status_code == 404:
        return True
    return "session" in response.text.lower()


class AgentGatewayClient:
    """Sends user messages to the remote agent, managing sessions transparently."""

    def __init__(
        self,
        base_url: str,
        agent_id: str,
        session_store: SessionStore,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        default_session_ttl: float = _DEFAULT_SESSION_TTL,
        retry_on_expired: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the gateway client.

        Args:
            base_url: Agent service base URL.
            agent_id: Agent to open sessions with.
            session_store: Cache of user -> session handle.
            http_client: Shared async HTTP client (created if omitted).
            timeout: Per-request timeout in seconds.
            default_session_ttl: Lifetime assumed when the backend omits expiresAt.
            retry_on_expired: Re-create the session and retry exactly once when
                a send reports an expired session.
            clock: Time source returning epoch seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.agent_id = agent_id
        self.session_store = session_store
        self.timeout = timeout
        self.default_session_ttl = default_session_ttl
        self.retry_on_expired = retry_on_expired
        self.clock = clock
        self._owns_client = http_client is None
        self.http = http_client or create_async_client(timeout)
        self._session_locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_settings(
        cls,
        settings,
        session_store: SessionStore,
        http_client: httpx.AsyncClient | None = None,
    ) -> AgentGatewayClient:
        return cls(
            base_url=settings.eliza_url,
            agent_id=settings.eliza_agent_id,
            session_store=session_store,
            http_client=http_client,
            timeout=settings.agent_timeout_seconds,
            default_session_ttl=settings.default_session_ttl_seconds,
            retry_on_expired=settings.retry_on_expired,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def resolve_session(self, user_id: str) -> str:
        """Return a valid session id for the user, creating one on a cache miss.

        Concurrent callers for the same user wait on one lock, so a cache miss
        produces a single create-session call that they all share.
        """
        async with self._session_lock(user_id):
            cached = await self._cached_session(user_id)
            if cached:
                logger.debug("Reusing session %s for %s", cached, user_id)
                return cached
            handle = await self._create_session(user_id)
            return handle.session_id

    async def create_session(self, user_id: str) -> SessionHandle:
        """Create a remote session for the user and cache it.

        Raises:
            SessionCreationFailed: Endpoint unreachable, non-2xx, or no sessionId.
            SessionStoreUnavailable: The new handle could not be cached.
        """
        async with self._session_lock(user_id):
            return await self._create_session(user_id)

    async def _renew_session(self, user_id: str, stale_session_id: str) -> str:
        """Replace an expired session, reusing one another caller already created."""
        async with self._session_lock(user_id):
            cached = await self._cached_session(user_id)
            if cached and cached != stale_session_id:
                return cached
            handle = await self._create_session(user_id)
            return handle.session_id

    def _session_lock(self, user_id: str) -> asyncio.Lock:
        lock = self._session_locks.get(user_id)
        if lock is None:
            lock = self._session_locks[user_id] = asyncio.Lock()
        return lock

    async def _cached_session(self, user_id: str) -> str | None:
        try:
            return await self.session_store.get(user_id)
        except Exception as e:
            logger.error("Session cache read failed for %s: %s", user_id, e)
            raise SessionStoreUnavailable(
                "Session cache unavailable", details=str(e)
            ) from e

    async def _create_session(self, user_id: str) -> SessionHandle:
        url = f"{self.base_url}/api/messaging/sessions"
        try:
            response = await self.http.post(
                url,
                json={"agentId": self.agent_id, "userId": user_id},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise SessionCreationFailed(
                f"Session creation failed: {e.__class__.__name__}", details=str(e)
            ) from e

        if response.is_error:
            logger.error(
                "Session creation failed for %s: %s", user_id, response.status_code
            )
            raise SessionCreationFailed(
                f"Session creation failed: {response.status_code}",
                details=response.text,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SessionCreationFailed(
                "Session creation failed: invalid JSON", details=response.text
            ) from e

        session_id = data.get("sessionId") if isinstance(data, dict) else None
        if not session_id:
            raise SessionCreationFailed(
                "Session creation failed: no sessionId in response",
                details=response.text,
            )

        expires_at = self._parse_expiry(data.get("expiresAt"))
        try:
            handle = await self.session_store.put(user_id, str(session_id), expires_at)
        except Exception as e:
            logger.error("Session cache write failed for %s: %s", user_id, e)
            raise SessionStoreUnavailable(
                "Session cache unavailable", details=str(e)
            ) from e
        logger.info("Created agent session %s for %s", session_id, user_id)
        return handle

    def _parse_expiry(self, value: Any) -> float:
        """Convert ``expiresAt`` (ISO-8601 or epoch s/ms) to epoch seconds."""
        if value is None:
            return self.clock() + self.default_session_ttl
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            seconds = float(value)
            return seconds / 1000 if seconds > _EPOCH_MS_THRESHOLD else seconds
        if isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                pass
            else:
                if parsed.tzinfo is None:
                    parsed = parsed.replace(tzinfo=timezone.utc)
                return parsed.timestamp()
        logger.warning("Unrecognized expiresAt %r, using default session TTL", value)
        return self.clock() + self.default_session_ttl

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send_message(
        self,
        user_id: str,
        message: str,
        vision_context: str | None = None,
    ) -> AgentReply:
        """Deliver a message and return the agent's reply.

        Args:
            user_id: Sender (authenticated or guest id).
            message: The user's text.
            vision_context: Optional scene description to prepend.

        Returns:
            AgentReply; ``text`` is None when the response carried no reply text.

        Raises:
            SessionCreationFailed: No session could be created.
            SessionExpired: The backend rejected the session (cache entry evicted).
            SendFailed: Any other send failure.
            SessionStoreUnavailable: The session cache could not be read or written.
        """
        content = compose_content(message, vision_context)
        session_id = await self.resolve_session(user_id)
        try:
            return await self._post_message(user_id, session_id, content)
        except SessionExpired:
            if not self.retry_on_expired:
                raise
            logger.info("Session %s expired for %s, retrying once", session_id, user_id)
            session_id = await self._renew_session(user_id, session_id)
            return await self._post_message(user_id, session_id, content)

    async def _post_message(self, user_id: str, session_id: str, content: str) -> AgentReply:
        url = f"{self.base_url}/api/messaging/sessions/{session_id}/messages"
        try:
            response = await self.http.post(
                url,
                json={"content": content, "mode": "sync"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise SendFailed("Eliza timed out", details=str(e)) from e
        except httpx.HTTPError as e:
            raise SendFailed(
                f"Eliza unreachable: {e.__class__.__name__}", details=str(e)
            ) from e

        if response.is_error:
            logger.error(
                "Eliza message error for session %s: %s", session_id, response.status_code
            )
            if _is_expired_session_response(response):
                try:
                    await self.session_store.evict(user_id)
                except Exception as e:
                    logger.warning("Could not evict session for %s: %s", user_id, e)
                raise SessionExpired(
                    f"Eliza failed: {response.status_code}",
                    details=response.text,
                    status_code=response.status_code,
                )
            raise SendFailed(
                f"Eliza failed: {response.status_code}",
                details=response.text,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            logger.warning("Eliza returned a non-JSON body for session %s", session_id)
            data = None

        extracted = extract_reply_text(data)
        thought, actions = extract_agent_metadata(data)
        if not extracted.found:
            logger.warning("No reply text in Eliza response for session %s", session_id)

        return AgentReply(
            session_id=session_id,
            text=extracted.text,
            thought=thought,
            actions=actions,
            source_path=extracted.path,
        )
