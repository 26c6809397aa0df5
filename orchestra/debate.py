"""A2A debate coordination: fixed collaboration, debate and synthesis phases.

Four debating providers take turns in a fixed order, strictly one after
another, over two collaboration rounds and two debate rounds. A designated
synthesizer then writes the final answer from the whole transcript. The
coordinator keeps nothing between runs; every event it emits is tagged with
the caller's session id.
"""

import logging

from config.config_loader import AppConfig
from orchestra.calls import call_provider
from orchestra.circuit_breaker import CircuitBreakerRegistry
from orchestra.events import AgentComplete, AgentStart, Complete, Error, EventSink, PhaseChange
from orchestra.models import ChatMessage, DebateSession, TranscriptEntry
from orchestra.prompts import today
from orchestra.providers.base import AIProvider
from orchestra.synthesis import SYNTHESIS, format_full_transcript, phase_label, synthesize
from orchestra.typing_effect import replay

logger = logging.getLogger(__name__)

COLLABORATION = "collaboration"
DEBATE = "debate"
DONE = "done"

# (phase, round) for every debating round, in execution order
DEBATE_SCHEDULE: list[tuple[str, int]] = [
    (COLLABORATION, 1),
    (COLLABORATION, 2),
    (DEBATE, 1),
    (DEBATE, 2),
]


class CoordinatorFatal(Exception):
    """Coordinator-level failure that aborts a run (e.g. missing session id)."""


def build_turn_messages(
    user_prompt: str,
    transcript: list[TranscriptEntry],
    provider_name: str,
    phase: str,
    round_number: int,
    config: AppConfig,
) -> list[ChatMessage]:
    """System prompt for the phase plus the question and the transcript so far."""
    template = config.prompts.collaboration if phase == COLLABORATION else config.prompts.debate
    system = template.format(
        date=today(config.defaults.timezone),
        provider_name=provider_name,
        round=round_number,
    )

    context = f"User question: {user_prompt}\n\n"
    if transcript:
        context += "Discussion so far:\n\n"
        for entry in transcript:
            label = phase_label(config, entry.phase)
            context += f"[{config.display_name(entry.provider)} - {label} round {entry.round}]\n{entry.content}\n\n"

    return [ChatMessage("system", system), ChatMessage("user", context)]


class DebateCoordinator:
    """Runs one multi-agent debate per ``run`` call."""

    def __init__(
        self,
        providers: dict[str, AIProvider],
        breakers: CircuitBreakerRegistry,
        config: AppConfig,
    ) -> None:
        self._providers = providers
        self._breakers = breakers
        self._config = config

    async def run(self, session_id: str, user_prompt: str, emit: EventSink) -> DebateSession | None:
        """Run the full debate, emitting events tagged with ``session_id``.

        Provider failures never abort the run. Coordinator failures are
        reported as a single Error event and the run ends without Complete.

        Returns:
            The finished session, or None if the run was aborted.
        """
        try:
            if not isinstance(session_id, str) or not session_id.strip():
                raise CoordinatorFatal("A debate requires a non-empty session id")
            return await self._run(DebateSession(session_id=session_id), user_prompt, emit)
        except CoordinatorFatal as exc:
            logger.error("Debate aborted: %s", exc)
            await emit(Error(str(exc), session_id=session_id or None))
        except Exception as exc:
            logger.exception("Debate coordinator failed for session %s", session_id)
            await emit(Error(f"Debate failed: {exc}", session_id=session_id or None))
        return None

    async def _run(self, session: DebateSession, user_prompt: str, emit: EventSink) -> DebateSession:
        sid = session.session_id
        debaters = self._config.debate.providers
        logger.info("A2A debate %s started with %s", sid, ", ".join(debaters))

        usable = 0
        for phase, round_number in DEBATE_SCHEDULE:
            if phase != session.phase:
                await emit(PhaseChange(phase, session_id=sid))
            session.phase, session.round = phase, round_number
            for provider_id in debaters:
                entry = await self._take_turn(session, provider_id, user_prompt, emit)
                if not entry.failed:
                    usable += 1
            logger.info("A2A %s %s round %d complete", sid, phase, round_number)

        session.phase, session.round = SYNTHESIS, 1
        await emit(PhaseChange(SYNTHESIS, session_id=sid))
        if await synthesize(session, user_prompt, self._providers, self._breakers, self._config, emit):
            usable += 1
        session.phase = DONE

        if usable == 0:
            logger.error("A2A debate %s produced no usable output", sid)
            await emit(Error(self._config.messages.all_failed, session_id=sid))
            return session

        await emit(Complete(format_full_transcript(session.transcript, self._config), provider="a2a", session_id=sid))
        return session

    async def _take_turn(
        self,
        session: DebateSession,
        provider_id: str,
        user_prompt: str,
        emit: EventSink,
    ) -> TranscriptEntry:
        sid = session.session_id
        phase, round_number = session.phase, session.round
        name = self._config.display_name(provider_id)

        await emit(AgentStart(provider_id, name, phase, round_number, session_id=sid))
        messages = build_turn_messages(user_prompt, session.transcript, name, phase, round_number, self._config)
        text = await call_provider(
            provider_id, self._providers.get(provider_id), self._breakers.get(provider_id), messages
        )

        failed = text is None
        if failed:
            logger.warning("A2A: %s failed in %s round %d", provider_id, phase, round_number)
            text = self._config.messages.turn_failed.format(provider_name=name)

        await replay(text, emit, self._config.typing.delay_sec, self._config.typing.every, session_id=sid)
        entry = TranscriptEntry(provider_id, text, phase, round_number, failed=failed)
        session.transcript.append(entry)
        await emit(AgentComplete(provider_id, name, phase, round_number, content=text, session_id=sid))
        return entry
