"""Chat module: message models, server-side handling and conversation orchestration.

The HTTP router lives in ``fliza.chat.router`` and is mounted by ``fliza.api``.
"""

from .models import (
    AgentReply,
    ChatAction,
    ChatResult,
    Message,
    MessageRole,
)
from .service import ChatService
from .orchestrator import ChatOrchestrator, ConversationState

__all__ = [
    "AgentReply",
    "ChatAction",
    "ChatResult",
    "Message",
    "MessageRole",
    "ChatService",
    "ChatOrchestrator",
    "ConversationState",
]
