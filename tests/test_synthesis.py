"""Tests for orchestra/synthesis.py."""

from unittest.mock import AsyncMock

from orchestra.circuit_breaker import CircuitBreakerRegistry
from orchestra.events import AgentComplete, AgentStart, Chunk
from orchestra.models import DebateSession, TranscriptEntry
from orchestra.synthesis import build_synthesis_messages, format_full_transcript, phase_label, synthesize
from tests.conftest import EventRecorder


def _session() -> DebateSession:
    return DebateSession(
        session_id="s1",
        phase="synthesis",
        round=1,
        transcript=[
            TranscriptEntry("openai", "Use a monorepo.", "collaboration", 1),
            TranscriptEntry("claude", "Agreed, with tooling.", "debate", 1),
        ],
    )


def test_phase_label_uses_config_then_title_case(sample_app_config):
    assert phase_label(sample_app_config, "debate") == "Debate"
    assert phase_label(sample_app_config, "warmup") == "Warmup"


def test_format_full_transcript(sample_app_config):
    transcript = _session().transcript + [TranscriptEntry("luxia", "Final answer.", "synthesis", 1)]

    text = format_full_transcript(transcript, sample_app_config)

    assert text == (
        "### OpenAI (Collaboration round 1)\nUse a monorepo.\n\n"
        "### Claude (Debate round 1)\nAgreed, with tooling.\n\n"
        "## Luxia final synthesis\nFinal answer."
    )


def test_format_full_transcript_empty(sample_app_config):
    assert format_full_transcript([], sample_app_config) == ""


def test_build_synthesis_messages_groups_by_phase(sample_app_config):
    messages = build_synthesis_messages("Monorepo?", _session().transcript, "Luxia", sample_app_config)

    assert messages[0].role == "system"
    assert "Luxia, synthesize" in messages[0].content
    body = messages[1].content
    assert body.startswith("Original question: Monorepo?")
    assert body.index("## Collaboration phase") < body.index("## Debate phase")
    assert "**OpenAI** (round 1):\nUse a monorepo." in body


async def test_synthesize_primary_success(sample_app_config, all_mock_providers):
    recorder = EventRecorder()
    session = _session()

    ok = await synthesize(
        session, "Monorepo?", all_mock_providers, CircuitBreakerRegistry(), sample_app_config, recorder
    )

    assert ok is True
    assert session.transcript[-1] == TranscriptEntry("luxia", "Answer from luxia", "synthesis", 1)
    assert isinstance(recorder.events[0], AgentStart)
    assert recorder.events[-1] == AgentComplete(
        "luxia", "Luxia", "synthesis", 1, content="Answer from luxia", session_id="s1"
    )
    all_mock_providers["claude"].chat.assert_not_called()


async def test_synthesize_fallback_emits_notice_then_second_turn(sample_app_config, all_mock_providers):
    all_mock_providers["luxia"].chat = AsyncMock(return_value=None)
    recorder = EventRecorder()
    session = _session()

    ok = await synthesize(
        session, "Monorepo?", all_mock_providers, CircuitBreakerRegistry(), sample_app_config, recorder
    )

    assert ok is True
    starts = [e.provider for e in recorder.of_type(AgentStart)]
    assert starts == ["luxia", "claude"]
    notice_index = recorder.events.index(
        Chunk("Luxia synthesis failed, synthesizing with Claude instead...\n\n", session_id="s1")
    )
    claude_start = recorder.events.index(recorder.of_type(AgentStart)[1])
    assert notice_index < claude_start
    synthesis = [e for e in session.transcript if e.phase == "synthesis"]
    assert [(e.provider, e.failed) for e in synthesis] == [("luxia", True), ("claude", False)]
    assert synthesis[0].content == "Luxia synthesis failed, synthesizing with Claude instead..."
    assert session.transcript[-1].content == "Answer from claude"


async def test_synthesize_total_failure(sample_app_config, all_mock_providers):
    all_mock_providers["luxia"].chat = AsyncMock(return_value=None)
    all_mock_providers["claude"].chat = AsyncMock(return_value=None)
    recorder = EventRecorder()
    session = _session()

    ok = await synthesize(
        session, "Monorepo?", all_mock_providers, CircuitBreakerRegistry(), sample_app_config, recorder
    )

    assert ok is False
    assert recorder.of_type(Chunk)[-1].content == sample_app_config.messages.synthesis_failed
    assert session.transcript[-1].failed
    assert session.transcript[-1].content == sample_app_config.messages.synthesis_failed
    assert [e.provider for e in session.transcript[-2:]] == ["luxia", "claude"]
    assert len(session.transcript) == 4
