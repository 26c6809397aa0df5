"""Final synthesis: format the transcript, run the synthesizer with one fallback."""

import logging

from config.config_loader import AppConfig
from orchestra.calls import call_provider
from orchestra.circuit_breaker import CircuitBreakerRegistry
from orchestra.events import AgentComplete, AgentStart, Chunk, EventSink
from orchestra.models import ChatMessage, DebateSession, TranscriptEntry
from orchestra.prompts import today
from orchestra.providers.base import AIProvider
from orchestra.typing_effect import replay

logger = logging.getLogger(__name__)

SYNTHESIS = "synthesis"


def phase_label(config: AppConfig, phase: str) -> str:
    return config.messages.phase_labels.get(phase, phase.title())


def format_full_transcript(transcript: list[TranscriptEntry], config: AppConfig) -> str:
    """Format every turn into the single markdown text handed to persistence."""
    parts: list[str] = []
    for entry in transcript:
        name = config.display_name(entry.provider)
        if entry.phase == SYNTHESIS:
            parts.append(f"## {name} final synthesis\n{entry.content}")
        else:
            parts.append(f"### {name} ({phase_label(config, entry.phase)} round {entry.round})\n{entry.content}")
    return "\n\n".join(parts)


def build_synthesis_messages(
    user_prompt: str,
    transcript: list[TranscriptEntry],
    provider_name: str,
    config: AppConfig,
) -> list[ChatMessage]:
    system = config.prompts.synthesis.format(
        date=today(config.defaults.timezone),
        provider_name=provider_name,
    )

    sections: list[str] = [f"Original question: {user_prompt}", "=== Full discussion ==="]
    for phase in ("collaboration", "debate"):
        entries = [e for e in transcript if e.phase == phase]
        if not entries:
            continue
        sections.append(f"## {phase_label(config, phase)} phase")
        for entry in entries:
            sections.append(f"**{config.display_name(entry.provider)}** (round {entry.round}):\n{entry.content}")
    sections.append("Write the final synthesized answer based on the discussion above.")

    return [ChatMessage("system", system), ChatMessage("user", "\n\n".join(sections))]


async def _synthesis_turn(
    provider_id: str,
    session: DebateSession,
    user_prompt: str,
    providers: dict[str, AIProvider],
    breakers: CircuitBreakerRegistry,
    config: AppConfig,
    emit: EventSink,
) -> str | None:
    name = config.display_name(provider_id)
    await emit(AgentStart(provider_id, name, SYNTHESIS, 1, session_id=session.session_id))
    messages = build_synthesis_messages(user_prompt, session.transcript, name, config)
    text = await call_provider(provider_id, providers.get(provider_id), breakers.get(provider_id), messages)
    if text is not None:
        await replay(
            text, emit, config.typing.delay_sec, config.typing.every, session_id=session.session_id
        )
    return text


async def synthesize(
    session: DebateSession,
    user_prompt: str,
    providers: dict[str, AIProvider],
    breakers: CircuitBreakerRegistry,
    config: AppConfig,
    emit: EventSink,
) -> bool:
    """Run the synthesis turn, then the fallback synthesizer once if it failed.

    Every synthesis turn leaves one transcript entry. A failed turn records
    its notice with ``failed=True``, so the transcript ends with the answer
    or with the final failure notice.

    Returns:
        True when either synthesizer produced an answer.
    """
    sid = session.session_id
    primary = config.debate.synthesizer
    fallback = config.debate.fallback_synthesizer
    primary_name = config.display_name(primary)

    logger.info("Running synthesis via %s", primary)
    text = await _synthesis_turn(primary, session, user_prompt, providers, breakers, config, emit)
    if text is not None:
        session.transcript.append(TranscriptEntry(primary, text, SYNTHESIS, 1))
        await emit(AgentComplete(primary, primary_name, SYNTHESIS, 1, content=text, session_id=sid))
        return True

    notice = config.messages.synthesis_fallback.format(
        provider_name=primary_name,
        fallback_name=config.display_name(fallback),
    )
    await emit(Chunk(notice, session_id=sid))
    session.transcript.append(TranscriptEntry(primary, notice.strip(), SYNTHESIS, 1, failed=True))
    await emit(AgentComplete(primary, primary_name, SYNTHESIS, 1, content=notice, session_id=sid))

    logger.warning("Synthesis via %s failed, falling back to %s", primary, fallback)
    fallback_name = config.display_name(fallback)
    text = await _synthesis_turn(fallback, session, user_prompt, providers, breakers, config, emit)
    if text is not None:
        session.transcript.append(TranscriptEntry(fallback, text, SYNTHESIS, 1))
        await emit(AgentComplete(fallback, fallback_name, SYNTHESIS, 1, content=text, session_id=sid))
        return True

    failure = config.messages.synthesis_failed
    logger.error("Fallback synthesis via %s failed too", fallback)
    await emit(Chunk(failure, session_id=sid))
    session.transcript.append(TranscriptEntry(fallback, failure, SYNTHESIS, 1, failed=True))
    await emit(AgentComplete(fallback, fallback_name, SYNTHESIS, 1, content=failure, session_id=sid))
    return False
