"""Per-conversation chat orchestration.

Owns the in-memory message list for one user. User messages appear
immediately as optimistic local entries, are confirmed against the message
store, and assistant replies arrive through two racing paths: the direct
response of the send and the realtime insert feed. Both paths are reconciled
so each reply is shown once.

Dedup works on durable ids. Content matching is only a fallback for replies
whose durable id is not known yet, and it is bounded by a time window.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from fliza.errors import DesignFailed, FlizaError, SendInProgress, VisionFailed
from fliza.identity import new_guest_id

from .models import ChatAction, ChatResult, Message, MessageRole, utcnow

if TYPE_CHECKING:
    from fliza.persistence import PersistenceAdapter, Subscription
    from fliza.vision import DesignClient, VisionClient

    from .service import ChatService

logger = logging.getLogger(__name__)

FALLBACK_ERROR = "Sorry, I'm having trouble connecting to the network."
VISION_FAILED = "I couldn't get a clear look just now. Try again in a moment."
VISION_UNAVAILABLE = "My vision module is offline right now."
DESIGN_NEEDS_IMAGE = "I need to see something first. Turn on the camera and try again."
DESIGN_UNAVAILABLE = "Design generation isn't available right now."
DESIGN_FAILED = "I couldn't finish that design. Let's try again in a moment."
DESIGN_DONE = "Here's what I came up with!"


class ConversationState(str, Enum):
    """Where the conversation is in the send cycle."""

    IDLE = "idle"
    SENDING = "sending"
    RECONCILING = "reconciling"


class ChatOrchestrator:
    """Message list, optimistic updates and reply reconciliation for one user."""

    def __init__(
        self,
        user_id: str,
        chat_service: "ChatService",
        persistence: "PersistenceAdapter",
        vision_client: "VisionClient | None" = None,
        design_client: "DesignClient | None" = None,
        dedup_window: timedelta = timedelta(seconds=30),
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the orchestrator.

        Args:
            user_id: Authenticated id or guest id.
            chat_service: Server-side chat handler.
            persistence: Message store adapter (no-op for guests).
            vision_client: Optional scene analysis client.
            design_client: Optional design generation client.
            dedup_window: How far apart two deliveries of the same reply may be
                and still be treated as one when no durable id is known.
            clock: Source of timezone-aware timestamps.
        """
        self.user_id = user_id
        self.chat_service = chat_service
        self.persistence = persistence
        self.vision_client = vision_client
        self.design_client = design_client
        self.dedup_window = dedup_window
        self.clock = clock

        self.state = ConversationState.IDLE
        self.composing = False
        self.pending_vision_context: str | None = None
        self.last_frame: str | None = None

        self._messages: list[Message] = []
        # Assistant rows that came in through the push feed and have not yet
        # been matched to a direct reply.
        self._pushed_unclaimed: set[str] = set()
        self._subscription: "Subscription | None" = None

    @classmethod
    def for_guest(
        cls,
        chat_service: "ChatService",
        persistence: "PersistenceAdapter",
        **kwargs: Any,
    ) -> ChatOrchestrator:
        """Create an orchestrator for a fresh guest identity."""
        return cls(new_guest_id(persistence.guest_prefix), chat_service, persistence, **kwargs)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def is_guest(self) -> bool:
        return self.persistence.is_guest(self.user_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to pushed inserts and load history (authenticated users only).

        Subscribing first means rows inserted while history loads are not
        lost; overlaps are dropped by id.
        """
        if self.is_guest:
            return
        self._subscription = await self.persistence.subscribe_inserts(
            self.user_id, self.handle_insert
        )
        for row in await self.persistence.query_history(self.user_id):
            self._ingest(row, pushed=False)
        logger.info("Loaded %d messages for %s", len(self._messages), self.user_id)

    async def stop(self) -> None:
        if self._subscription is not None:
            await self._subscription.unsubscribe()
            self._subscription = None

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_message(
        self,
        content: str,
        role: MessageRole = MessageRole.USER,
        vision_context: str | None = None,
        attached_image: str | None = None,
    ) -> Message | None:
        """Send a message and reconcile the reply.

        Assistant-role messages are appended (and persisted) locally without
        calling the agent.

        Args:
            content: Message text.
            role: USER to talk to the agent, ASSISTANT for a local message.
            vision_context: Scene description for the agent. Defaults to the
                pending analysis from ``analyze_scene``.
            attached_image: Camera frame for design requests.

        Returns:
            The assistant message shown for this send, or None for
            assistant-role messages.

        Raises:
            SendInProgress: Another user send is still outstanding.
        """
        role = MessageRole(role)
        # Checked before the first await, so two sends cannot both pass.
        if role is MessageRole.USER and self.state is not ConversationState.IDLE:
            raise SendInProgress(self.user_id)

        optimistic = self._local(content, role, "temp")
        self._append(optimistic)

        if role is MessageRole.ASSISTANT:
            await self._persist(optimistic)
            return None

        self.state = ConversationState.SENDING
        self.composing = True
        try:
            await self._persist(optimistic)

            self.state = ConversationState.RECONCILING
            context = vision_context or self.pending_vision_context
            self.pending_vision_context = None
            try:
                result = await self.chat_service.handle(
                    self.user_id,
                    content,
                    vision_context=context,
                    attached_image=attached_image,
                )
            except FlizaError as e:
                logger.error("Failed to get a reply for %s: %s", self.user_id, e)
                return self._append_local(FALLBACK_ERROR, "err")

            if result.action is ChatAction.TRIGGER_DESIGN:
                return await self._run_design(result)
            return self._reconcile_reply(result)
        finally:
            self.composing = False
            self.state = ConversationState.IDLE

    async def _persist(self, optimistic: Message) -> None:
        stored = await self.persistence.insert(
            self.user_id, optimistic.role, optimistic.content, optimistic.metadata or None
        )
        if stored is not None:
            self._confirm(optimistic.id, stored)

    # ------------------------------------------------------------------
    # Vision and design
    # ------------------------------------------------------------------

    async def analyze_scene(self, image: str) -> str:
        """Analyze a camera frame.

        On success the analysis becomes the vision context of the next send.

        Returns:
            The analysis, or a user-visible substitute when analysis failed.
        """
        self.last_frame = image
        if self.vision_client is None:
            return VISION_UNAVAILABLE
        try:
            analysis = await self.vision_client.analyze(image)
        except VisionFailed as e:
            logger.warning("Vision analysis failed for %s: %s", self.user_id, e.details or e)
            return VISION_FAILED
        self.pending_vision_context = analysis.analysis
        return analysis.analysis

    async def _run_design(self, result: ChatResult) -> Message:
        self._append_local(result.response, "ai", {"action": ChatAction.TRIGGER_DESIGN.value})

        image = result.attached_image or self.last_frame
        if self.design_client is None:
            return self._append_local(DESIGN_UNAVAILABLE, "design")
        if not image:
            return self._append_local(DESIGN_NEEDS_IMAGE, "design")

        try:
            design = await self.design_client.generate(image, result.design_prompt)
        except DesignFailed as e:
            logger.warning("Design failed for %s: %s", self.user_id, e)
            return self._append_local(DESIGN_FAILED, "design")

        return self._append_local(
            design.text or DESIGN_DONE,
            "design",
            {"image": design.image, "designPrompt": result.design_prompt},
        )

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def handle_insert(self, row: Message) -> None:
        """Realtime push callback. Delivery is at-least-once."""
        self._ingest(row, pushed=True)

    def _ingest(self, row: Message, pushed: bool) -> None:
        if self._index_of(row.id) is not None:
            logger.debug("Dropping duplicate delivery of %s", row.id)
            return

        idx = self._find_local_match(row)
        if idx is not None:
            self._messages[idx] = row
            self._sort()
            return

        self._append(row)
        if pushed and row.role is MessageRole.ASSISTANT:
            self._pushed_unclaimed.add(row.id)

    def _confirm(self, local_id: str, stored: Message) -> None:
        """Swap an optimistic entry for its durable row."""
        local_idx = self._index_of(local_id)
        if self._index_of(stored.id) is not None:
            # The push feed delivered the row first.
            if local_idx is not None:
                del self._messages[local_idx]
            return
        if local_idx is None:
            self._append(stored)
            return
        self._messages[local_idx] = stored
        self._sort()

    def _reconcile_reply(self, result: ChatResult) -> Message:
        if result.message_id:
            idx = self._index_of(result.message_id)
            if idx is not None:
                self._pushed_unclaimed.discard(result.message_id)
                return self._messages[idx]
            reply = Message(
                id=result.message_id,
                content=result.response,
                role=MessageRole.ASSISTANT,
                created_at=result.created_at or self.clock(),
                metadata=dict(result.metadata),
                user_id=self.user_id,
            )
            self._append(reply)
            return reply

        now = self.clock()
        for message_id in list(self._pushed_unclaimed):
            idx = self._index_of(message_id)
            if idx is None:
                self._pushed_unclaimed.discard(message_id)
                continue
            pushed = self._messages[idx]
            if pushed.content == result.response and self._within_window(pushed.created_at, now):
                self._pushed_unclaimed.discard(message_id)
                return pushed

        return self._append_local(result.response, "ai", result.metadata)

    def _find_local_match(self, row: Message) -> int | None:
        # Newest first, so a repeated message confirms the latest optimistic copy.
        for idx in range(len(self._messages) - 1, -1, -1):
            candidate = self._messages[idx]
            if (
                candidate.is_local
                and candidate.role is row.role
                and candidate.content == row.content
                and self._within_window(candidate.created_at, row.created_at)
            ):
                return idx
        return None

    # ------------------------------------------------------------------
    # List helpers
    # ------------------------------------------------------------------

    def _local(
        self, content: str, role: MessageRole, kind: str, metadata: dict | None = None
    ) -> Message:
        return Message.local(
            content, role, kind=kind, metadata=metadata, created_at=self.clock()
        )

    def _append_local(self, content: str, kind: str, metadata: dict | None = None) -> Message:
        message = self._local(content, MessageRole.ASSISTANT, kind, metadata)
        self._append(message)
        return message

    def _append(self, message: Message) -> None:
        self._messages.append(message)
        self._sort()

    def _sort(self) -> None:
        # list.sort is stable: equal timestamps keep insertion order.
        self._messages.sort(key=lambda m: m.created_at)

    def _index_of(self, message_id: str) -> int | None:
        for idx, message in enumerate(self._messages):
            if message.id == message_id:
                return idx
        return None

    def _within_window(self, a: datetime, b: datetime) -> bool:
        return abs(a - b) <= self.dedup_window
