"""Exception hierarchy for Fliza.

Every remote-call failure is raised as a subclass of FlizaError so that the
outermost handlers (the chat orchestrator and the HTTP router) can turn it into
a user-visible fallback instead of leaking raw transport errors.
"""

from __future__ import annotations

_MAX_DETAIL_CHARS = 200


def truncate_detail(detail: str | None, limit: int = _MAX_DETAIL_CHARS) -> str | None:
    """Bound error detail text so upstream bodies never flood logs or clients."""
    if detail is None:
        return None
    return detail[:limit]


class FlizaError(Exception):
    """Base class for all Fliza errors."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = truncate_detail(details)

    def to_dict(self) -> dict:
        data = {"error": self.message}
        if self.details:
            data["details"] = self.details
        return data


class GatewayError(FlizaError):
    """Raised when the remote agent backend cannot serve a request."""

    def __init__(
        self,
        message: str,
        details: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class SessionCreationFailed(GatewayError):
    """The create-session endpoint was unreachable or returned non-2xx."""


class SessionExpired(GatewayError):
    """The backend no longer knows the cached session (404 or a session error body)."""


class SendFailed(GatewayError):
    """The send-message endpoint failed for a reason other than session expiry."""


class SessionStoreUnavailable(GatewayError):
    """The session cache could not be read or written (e.g. Redis is down)."""


class PersistenceWriteFailed(FlizaError):
    """A durable write failed. Logged, never surfaced to the user."""


class VisionFailed(FlizaError):
    """Scene analysis through the multimodal model failed."""


class DesignFailed(FlizaError):
    """Design generation failed or produced no image."""


class SendInProgress(FlizaError):
    """A second send was issued while one is still outstanding for the user."""

    def __init__(self, user_id: str):
        super().__init__(f"A message is already being sent for user {user_id}")
        self.user_id = user_id
