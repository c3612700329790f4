"""Shared helpers for CLI modules: console, service wiring, image loading."""

from __future__ import annotations

import base64
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator

import typer
from rich.console import Console

if TYPE_CHECKING:
    from fliza.chat import ChatOrchestrator
    from fliza.config import Settings

console = Console()


def load_image(path: Path) -> str:
    """Read an image file as a base64 data URL."""
    if not path.is_file():
        console.print(f"[red]Image not found:[/red] {path}")
        raise typer.Exit(1)
    mime = "image/png" if path.suffix.lower() == ".png" else "image/jpeg"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


@asynccontextmanager
async def open_orchestrator(
    settings: "Settings", user_id: str | None = None
) -> AsyncIterator["ChatOrchestrator"]:
    """Wire up a started ChatOrchestrator for a terminal conversation.

    Without ``user_id`` a fresh guest identity is used.
    """
    from fliza.chat import ChatOrchestrator, ChatService
    from fliza.gateway import AgentGatewayClient
    from fliza.persistence import PersistenceAdapter
    from fliza.sessions import create_session_store
    from fliza.vision import DesignClient, VisionClient

    async with AsyncExitStack() as stack:
        sessions = create_session_store(settings)
        stack.push_async_callback(sessions.aclose)

        gateway = AgentGatewayClient.from_settings(settings, session_store=sessions)
        stack.push_async_callback(gateway.aclose)

        store = None
        if settings.has_persistence:
            from fliza.persistence.supabase_store import SupabaseMessageStore

            store = await SupabaseMessageStore.from_settings(settings)
            stack.push_async_callback(store.aclose)
        persistence = PersistenceAdapter(store, settings.guest_prefix)

        vision = design = None
        if settings.has_vision:
            vision = VisionClient.from_settings(settings)
            design = DesignClient.from_settings(settings)

        options = dict(
            vision_client=vision,
            design_client=design,
            dedup_window=timedelta(seconds=settings.dedup_window_seconds),
        )
        service = ChatService(gateway, persistence)
        if user_id:
            orchestrator = ChatOrchestrator(user_id, service, persistence, **options)
        else:
            orchestrator = ChatOrchestrator.for_guest(service, persistence, **options)

        await orchestrator.start()
        stack.push_async_callback(orchestrator.stop)
        yield orchestrator
