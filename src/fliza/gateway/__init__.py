"""Remote agent gateway: sessions, message delivery, reply extraction and intent routing."""

from .client import AgentGatewayClient, compose_content
from .extraction import NOT_FOUND, REPLY_TEXT_PATHS, ExtractedText, extract_reply_text
from .intent import DesignIntent, detect_design_intent

__all__ = [
    "AgentGatewayClient",
    "compose_content",
    "NOT_FOUND",
    "REPLY_TEXT_PATHS",
    "ExtractedText",
    "extract_reply_text",
    "DesignIntent",
    "detect_design_intent",
]
