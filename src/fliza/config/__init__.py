"""Configuration module for Fliza."""

from .settings import Settings, get_settings
from .logging import (
    configure_logging,
    sanitize_log_message,
    JSONFormatter,
    SanitizingFilter,
    TextFormatter,
)

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "sanitize_log_message",
    "JSONFormatter",
    "SanitizingFilter",
    "TextFormatter",
]
