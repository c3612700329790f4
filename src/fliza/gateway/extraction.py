"""Reply-text extraction from agent responses.

The agent backend has changed its envelope shape between releases, so the
reply text is looked up along an ordered list of field paths. The first path
holding a non-empty string wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Priority order: current envelope first, then older flat shapes.
REPLY_TEXT_PATHS: tuple[tuple[str, ...], ...] = (
    ("agentResponse", "text"),
    ("text",),
    ("content",),
    ("response",),
)


@dataclass(frozen=True)
class ExtractedText:
    """Result of a reply-text lookup.

    Attributes:
        text: The reply text, or None when no path matched.
        path: Dotted path the text was found at.
    """

    text: str | None
    path: str | None = None

    @property
    def found(self) -> bool:
        return self.text is not None


NOT_FOUND = ExtractedText(text=None, path=None)


def _walk(payload: Any, path: tuple[str, ...]) -> Any:
    node = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def extract_reply_text(
    payload: Any,
    paths: tuple[tuple[str, ...], ...] = REPLY_TEXT_PATHS,
) -> ExtractedText:
    """Find the reply text in an agent response.

    Args:
        payload: Decoded JSON body. A list is read from its first element.
        paths: Field paths to try, highest priority first.

    Returns:
        ExtractedText with the first non-empty string, or NOT_FOUND.
    """
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    if not isinstance(payload, dict):
        return NOT_FOUND

    for path in paths:
        value = _walk(payload, path)
        if isinstance(value, str) and value.strip():
            return ExtractedText(text=value, path=".".join(path))
    return NOT_FOUND


def extract_agent_metadata(payload: Any) -> tuple[str | None, list[str]]:
    """Pull the optional ``agentResponse.thought`` and ``agentResponse.actions``."""
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    thought = _walk(payload, ("agentResponse", "thought"))
    actions = _walk(payload, ("agentResponse", "actions"))
    if not isinstance(thought, str):
        thought = None
    if isinstance(actions, str):
        actions = [actions]
    elif isinstance(actions, list):
        actions = [str(a) for a in actions]
    else:
        actions = []
    return thought, actions
