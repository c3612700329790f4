"""Chat data models."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Ids minted locally before the message store assigns a durable one.
LOCAL_ID_PREFIXES = ("temp-", "ai-", "err-", "design-")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_message_id(kind: str = "temp") -> str:
    """Mint a local message id, e.g. ``temp-3f2a...``."""
    return f"{kind}-{uuid.uuid4().hex[:12]}"


def is_local_id(message_id: str) -> bool:
    return message_id.startswith(LOCAL_ID_PREFIXES)


class MessageRole(str, Enum):
    """Message author role."""

    USER = "user"
    ASSISTANT = "assistant"


class ChatAction(str, Enum):
    """What the client should do with a chat result."""

    REPLY = "REPLY"
    TRIGGER_DESIGN = "TRIGGER_DESIGN"


class Message(BaseModel):
    """A chat message, either local (optimistic) or durably stored."""

    id: str
    content: str
    role: MessageRole
    created_at: datetime = Field(default_factory=utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None

    @property
    def is_local(self) -> bool:
        """True until the message store has assigned a durable id."""
        return is_local_id(self.id)

    @classmethod
    def local(
        cls,
        content: str,
        role: MessageRole,
        kind: str = "temp",
        metadata: dict[str, Any] | None = None,
        created_at: datetime | None = None,
    ) -> Message:
        return cls(
            id=local_message_id(kind),
            content=content,
            role=role,
            created_at=created_at or utcnow(),
            metadata=dict(metadata or {}),
        )

    @classmethod
    def from_db_row(cls, row: dict) -> Message:
        """Create from a message-store row."""
        metadata = row.get("metadata")
        if metadata and isinstance(metadata, str):
            metadata = json.loads(metadata)
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        if isinstance(created_at, datetime) and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return cls(
            id=str(row["id"]),
            content=row["content"],
            role=MessageRole(row["role"]),
            created_at=created_at or utcnow(),
            metadata=metadata or {},
            user_id=row.get("user_id"),
        )


class AgentReply(BaseModel):
    """Reply from the remote agent for one send."""

    session_id: str
    text: str | None = None
    thought: str | None = None
    actions: list[str] = Field(default_factory=list)
    source_path: str | None = None

    @property
    def found(self) -> bool:
        return bool(self.text)

    def metadata(self) -> dict[str, Any]:
        data: dict[str, Any] = {"sessionId": self.session_id}
        if self.thought:
            data["thought"] = self.thought
        if self.actions:
            data["actions"] = list(self.actions)
        return data


class ChatResult(BaseModel):
    """Outcome of handling one user message on the server side."""

    action: ChatAction = ChatAction.REPLY
    response: str
    session_id: str | None = None
    message_id: str | None = None
    created_at: datetime | None = None  # stored row time when message_id is set
    design_prompt: str | None = None
    attached_image: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# API Request/Response models


class ChatRequest(BaseModel):
    """Request body of ``POST /api/chat``."""

    model_config = ConfigDict(populate_by_name=True)

    message: str | None = None
    user_id: str | None = Field(default=None, alias="userId")
    vision_context: str | None = Field(default=None, alias="visionContext")
    attached_image: str | None = Field(default=None, alias="attachedImage")


class ChatResponse(BaseModel):
    """Response body of ``POST /api/chat``."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    action: ChatAction | None = None
    response: str
    design_prompt: str | None = Field(default=None, alias="designPrompt")
    attached_image: str | None = Field(default=None, alias="attachedImage")
    session_id: str | None = Field(default=None, alias="sessionId")
    message_id: str | None = Field(default=None, alias="messageId")

    @classmethod
    def from_result(cls, result: ChatResult) -> ChatResponse:
        return cls(
            action=result.action if result.action is ChatAction.TRIGGER_DESIGN else None,
            response=result.response,
            design_prompt=result.design_prompt,
            attached_image=result.attached_image,
            session_id=result.session_id,
            message_id=result.message_id,
        )


class VisionRequest(BaseModel):
    image: str | None = None


class DesignRequest(BaseModel):
    image: str | None = None
    prompt: str | None = None
