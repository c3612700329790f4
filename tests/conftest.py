"""Shared test doubles."""

from __future__ import annotations

import asyncio

import pytest

from fliza.chat.models import AgentReply


class FakeGateway:
    """Stands in for AgentGatewayClient.

    Replies with ``reply_text`` unless ``error`` is set. When ``gate`` is set
    the send waits on it, and ``on_send`` runs before the reply is returned.
    """

    def __init__(self, reply_text: str | None = "hi there"):
        self.reply_text = reply_text
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.on_send = None
        self.calls: list[dict] = []

    async def send_message(self, user_id, message, vision_context=None) -> AgentReply:
        self.calls.append(
            {"user_id": user_id, "message": message, "vision_context": vision_context}
        )
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.on_send is not None:
            self.on_send()
        return AgentReply(
            session_id="sess-1",
            text=self.reply_text,
            thought="being friendly",
        )


@pytest.fixture
def gateway():
    return FakeGateway()
