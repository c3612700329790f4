"""Fliza CLI - Main entry point."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel

from fliza import __version__

from .helpers import console, load_image, open_orchestrator

app = typer.Typer(
    name="fliza",
    help="Chat-session orchestration for the Fliza companion",
    add_completion=False,
)

CHAT_HELP = (
    "Commands:\n"
    "  /look <image>  analyze a camera frame (used as context for the next message)\n"
    "  /quit          leave the conversation"
)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from fliza.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "fliza.api:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_config=None,
    )


@app.command()
def chat(
    user: Optional[str] = typer.Option(
        None, "--user", "-u", help="Authenticated user id (default: new guest)"
    ),
    image: Optional[Path] = typer.Option(
        None, "--image", "-i", help="Camera frame to analyze before the first message"
    ),
):
    """Talk to the agent from the terminal."""
    from fliza.config import configure_logging, get_settings
    from fliza.errors import SendInProgress

    settings = get_settings()
    configure_logging(level="WARNING", format="text", sanitize_logs=settings.sanitize_logs)

    async def run_chat():
        async with open_orchestrator(settings, user_id=user) as orchestrator:
            mode = "guest" if orchestrator.is_guest else "signed in"
            console.print(
                Panel(
                    f"[bold]User:[/bold] {orchestrator.user_id} ({mode})\n"
                    f"[bold]Agent:[/bold] {settings.eliza_url}\n\n{CHAT_HELP}",
                    title="Fliza",
                    border_style="magenta",
                )
            )
            for message in orchestrator.messages:
                _print_message(message.role.value, message.content)

            if image is not None:
                await _look(orchestrator, image)

            while True:
                try:
                    line = await asyncio.to_thread(console.input, "[bold cyan]you>[/bold cyan] ")
                except (EOFError, KeyboardInterrupt):
                    break
                line = line.strip()
                if not line:
                    continue
                if line in ("/quit", "/exit"):
                    break
                if line.startswith("/look"):
                    target = line[len("/look"):].strip()
                    if not target:
                        console.print("[yellow]Usage: /look <image>[/yellow]")
                        continue
                    await _look(orchestrator, Path(target))
                    continue

                seen = {m.id for m in orchestrator.messages}
                try:
                    with console.status("Fliza is typing..."):
                        await orchestrator.send_message(line)
                except SendInProgress as e:
                    console.print(f"[yellow]{e.message}[/yellow]")
                    continue
                for message in orchestrator.messages:
                    if message.id not in seen and message.role.value == "assistant":
                        _print_message("fliza", message.content)
                        if message.metadata.get("image"):
                            console.print("[dim](design image attached)[/dim]")

    try:
        asyncio.run(run_chat())
    except KeyboardInterrupt:
        pass
    console.print("[dim]Bye![/dim]")


@app.command()
def version():
    """Show version information."""
    console.print(f"fliza {__version__}")


async def _look(orchestrator, path: Path) -> None:
    frame = load_image(path)
    with console.status("Scanning..."):
        analysis = await orchestrator.analyze_scene(frame)
    _print_message("vision", analysis)


def _print_message(speaker: str, content: str) -> None:
    style = {"user": "cyan", "vision": "green"}.get(speaker, "magenta")
    console.print(f"[bold {style}]{speaker}>[/bold {style}] {content}")


if __name__ == "__main__":
    app()
