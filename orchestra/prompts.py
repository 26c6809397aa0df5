"""System prompt helpers shared by the orchestrator and the debate coordinator."""

from datetime import datetime
from zoneinfo import ZoneInfo

from orchestra.models import ChatMessage


def today(timezone: str, now: datetime | None = None) -> str:
    """Current date in ``timezone``, e.g. 'Thursday, January 2, 2025 (Asia/Seoul)'."""
    local = (now or datetime.now(tz=ZoneInfo("UTC"))).astimezone(ZoneInfo(timezone))
    return f"{local:%A}, {local:%B} {local.day}, {local.year} ({timezone})"


def with_system_prompt(messages: list[ChatMessage], system_prompt: str) -> list[ChatMessage]:
    """Prepend ``system_prompt`` to existing system messages, or insert one first."""
    if any(m.role == "system" for m in messages):
        return [
            ChatMessage("system", f"{system_prompt}\n\n{m.content}") if m.role == "system" else m
            for m in messages
        ]
    return [ChatMessage("system", system_prompt), *messages]
