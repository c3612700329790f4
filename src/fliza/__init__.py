"""Fliza - chat-session orchestration for an AI companion backed by a remote agent."""

__version__ = "0.1.0"

from .config import Settings, get_settings
from .errors import (
    DesignFailed,
    FlizaError,
    GatewayError,
    PersistenceWriteFailed,
    SendFailed,
    SendInProgress,
    SessionCreationFailed,
    SessionExpired,
    SessionStoreUnavailable,
    VisionFailed,
)

__all__ = [
    "Settings",
    "get_settings",
    "DesignFailed",
    "FlizaError",
    "GatewayError",
    "PersistenceWriteFailed",
    "SendFailed",
    "SendInProgress",
    "SessionCreationFailed",
    "SessionExpired",
    "SessionStoreUnavailable",
    "VisionFailed",
]
