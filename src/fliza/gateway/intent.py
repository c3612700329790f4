"""Rule-based design intent detection.

Messages that ask Fliza to make something out of what the camera sees are
routed to the design workflow instead of the agent. Detection is plain
keyword matching (no model call) so it costs nothing per message.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DESIGN_KEYWORDS: tuple[str, ...] = (
    "design",
    "create",
    "generate",
    "make",
    "draw",
    "artwork",
    "poster",
    "image",
    "picture",
    "sketch",
)

CONTEXT_KEYWORDS: tuple[str, ...] = (
    "this",
    "see",
    "camera",
    "looking",
    "photo",
    "here",
    "showing",
)


@dataclass
class DesignIntent:
    """Result of design intent detection.

    Attributes:
        is_design_request: True when both keyword classes matched.
        prompt: The prompt to hand to the design model (the message itself).
        action_hits: Action keywords found in the message.
        context_hits: Context keywords found in the message.
    """

    is_design_request: bool
    prompt: str = ""
    action_hits: list[str] = field(default_factory=list)
    context_hits: list[str] = field(default_factory=list)


def detect_design_intent(message: str) -> DesignIntent:
    """Classify a message as a design request.

    Both keyword sets are case-insensitive substring checks; a match needs at
    least one action keyword and one context keyword.
    """
    lower = message.lower()
    action_hits = [kw for kw in DESIGN_KEYWORDS if kw in lower]
    context_hits = [kw for kw in CONTEXT_KEYWORDS if kw in lower]

    if action_hits and context_hits:
        return DesignIntent(
            is_design_request=True,
            prompt=message,
            action_hits=action_hits,
            context_hits=context_hits,
        )
    return DesignIntent(
        is_design_request=False,
        action_hits=action_hits,
        context_hits=context_hits,
    )
