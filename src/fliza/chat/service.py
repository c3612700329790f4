"""Server-side chat handling.

Routes design requests away from the agent, forwards everything else through
the gateway, and stores the assistant reply for authenticated users.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fliza.gateway.intent import detect_design_intent

from .models import ChatAction, ChatResult, MessageRole

if TYPE_CHECKING:
    from fliza.gateway.client import AgentGatewayClient
    from fliza.persistence import PersistenceAdapter

logger = logging.getLogger(__name__)

DESIGN_ACK = "I'll create a design based on what I see. Give me a moment..."
EMPTY_REPLY = "I received your message but couldn't generate a response."


class ChatService:
    """Handles one user message end to end on the server side."""

    def __init__(
        self,
        gateway: "AgentGatewayClient",
        persistence: "PersistenceAdapter",
    ):
        """Initialize the service.

        Args:
            gateway: Client for the remote agent.
            persistence: Store for assistant replies (guests are skipped).
        """
        self.gateway = gateway
        self.persistence = persistence

    async def handle(
        self,
        user_id: str,
        message: str,
        vision_context: str | None = None,
        attached_image: str | None = None,
    ) -> ChatResult:
        """Handle a user message.

        Args:
            user_id: Authenticated or guest id.
            message: The user's text.
            vision_context: Optional scene description for the agent.
            attached_image: Optional camera frame, passed through to design requests.

        Returns:
            ChatResult with either the agent reply or a design trigger.

        Raises:
            GatewayError: The agent could not be reached or rejected the send.
        """
        intent = detect_design_intent(message)
        if intent.is_design_request:
            logger.info("Design intent detected for %s", user_id)
            return ChatResult(
                action=ChatAction.TRIGGER_DESIGN,
                response=DESIGN_ACK,
                design_prompt=intent.prompt,
                attached_image=attached_image,
            )

        reply = await self.gateway.send_message(user_id, message, vision_context)

        if not reply.found:
            return ChatResult(
                response=EMPTY_REPLY,
                session_id=reply.session_id,
                metadata=reply.metadata(),
            )

        metadata = reply.metadata()
        stored = await self.persistence.insert(
            user_id, MessageRole.ASSISTANT, reply.text, metadata
        )
        return ChatResult(
            response=reply.text,
            session_id=reply.session_id,
            message_id=stored.id if stored else None,
            created_at=stored.created_at if stored else None,
            metadata=metadata,
        )
