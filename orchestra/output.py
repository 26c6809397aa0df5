"""Rich console rendering of stream events and markdown file save for results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.text import Text

from config.config_loader import AppConfig
from orchestra.events import (
    AgentComplete,
    AgentStart,
    Chunk,
    Complete,
    ConversationId,
    Error,
    PhaseChange,
    StreamEvent,
)
from orchestra.synthesis import phase_label

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def print_event(event: StreamEvent, config: AppConfig, out: Console | None = None) -> None:
    """Render one event as it arrives.

    Chunks are written without a trailing newline so streamed text reads as
    continuous prose; structural events get their own rules and lines.
    """
    out = out or console
    if isinstance(event, Chunk):
        out.print(event.content, end="", markup=False, highlight=False, soft_wrap=True)
    elif isinstance(event, PhaseChange):
        out.print()
        out.print(Rule(f"[bold cyan]{phase_label(config, event.phase)}[/bold cyan]"))
    elif isinstance(event, AgentStart):
        out.print()
        out.print(
            Text(f"{event.provider_name} ({phase_label(config, event.phase)} round {event.round})", style="bold")
        )
    elif isinstance(event, AgentComplete):
        out.print()
    elif isinstance(event, ConversationId):
        out.print(Text(f"Conversation: {event.conversation_id}", style="dim"))
    elif isinstance(event, Complete):
        out.print()
        out.print(Rule(style="green"))
        out.print(Text(f"Completed by: {event.provider or 'unknown'}", style="dim"))
    elif isinstance(event, Error):
        out.print()
        out.print(f"[bold red]Error:[/bold red] {escape(event.message)}", highlight=False)


def save_to_file(
    content: str,
    prompt: str,
    mode: str,
    provider: str | None,
    output_dir: Path,
) -> Path:
    """Save a finished response as a markdown file.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    now = datetime.now()
    filepath = output_dir / f"{now.strftime('%Y%m%d_%H%M%S')}_{_slug(prompt) or mode}.md"

    lines: list[str] = [
        f"# AI Orchestra: {prompt[:80]}",
        "",
        f"**Date:** {now.strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Mode:** {mode}",
        f"**Provider:** {provider or 'unknown'}",
        "",
        "---",
        "",
        content,
        "",
    ]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Response saved to: %s", filepath)
    return filepath
