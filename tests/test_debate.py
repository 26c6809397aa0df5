"""Tests for orchestra/debate.py."""

from unittest.mock import AsyncMock, patch

import pytest

from orchestra.circuit_breaker import CircuitBreakerRegistry
from orchestra.debate import DEBATE_SCHEDULE, DebateCoordinator, build_turn_messages
from orchestra.events import AgentComplete, AgentStart, Chunk, Complete, Error, PhaseChange
from orchestra.models import TranscriptEntry
from tests.conftest import EventRecorder

PROMPT = "Should a small team adopt a monorepo?"
DEBATERS = ["openai", "claude", "gemini", "perplexity"]


def _coordinator(config, providers, registry=None) -> DebateCoordinator:
    return DebateCoordinator(providers, registry or CircuitBreakerRegistry(), config)


def _turns(recorder: EventRecorder) -> list[tuple[str, str, int]]:
    return [(e.provider, e.phase, e.round) for e in recorder.of_type(AgentStart)]


async def test_full_run_order(sample_app_config, all_mock_providers, recorder):
    coordinator = _coordinator(sample_app_config, all_mock_providers)

    session = await coordinator.run("s1", PROMPT, recorder)

    expected = [(p, phase, rnd) for phase, rnd in DEBATE_SCHEDULE for p in DEBATERS]
    expected.append(("luxia", "synthesis", 1))
    assert _turns(recorder) == expected
    assert len(expected) == 17

    assert [e.phase for e in recorder.of_type(PhaseChange)] == ["collaboration", "debate", "synthesis"]
    assert isinstance(recorder.events[-1], Complete)
    assert len(recorder.of_type(Complete)) == 1
    assert recorder.of_type(Error) == []
    assert session is not None
    assert len(session.transcript) == 17
    assert session.phase == "done"


async def test_every_event_carries_session_id(sample_app_config, all_mock_providers, recorder):
    await _coordinator(sample_app_config, all_mock_providers).run("room-42", PROMPT, recorder)
    assert {e.session_id for e in recorder.events} == {"room-42"}


async def test_turn_events_bracket_chunks(sample_app_config, all_mock_providers, recorder):
    await _coordinator(sample_app_config, all_mock_providers).run("s1", PROMPT, recorder)

    first_start = recorder.events.index(recorder.of_type(AgentStart)[0])
    first_complete = recorder.events.index(recorder.of_type(AgentComplete)[0])
    between = recorder.events[first_start + 1:first_complete]
    assert all(isinstance(e, Chunk) for e in between)
    assert "".join(e.content for e in between) == "Answer from openai"
    assert recorder.events[first_complete].content == "Answer from openai"


async def test_complete_content_is_formatted_transcript(sample_app_config, all_mock_providers, recorder):
    await _coordinator(sample_app_config, all_mock_providers).run("s1", PROMPT, recorder)

    content = recorder.events[-1].content
    assert content.startswith("### OpenAI (Collaboration round 1)\nAnswer from openai")
    assert "### Perplexity (Debate round 2)\nAnswer from perplexity" in content
    assert content.endswith("## Luxia final synthesis\nAnswer from luxia")
    assert recorder.events[-1].provider == "a2a"


async def test_later_turns_see_transcript(sample_app_config, all_mock_providers, recorder):
    await _coordinator(sample_app_config, all_mock_providers).run("s1", PROMPT, recorder)

    claude_first = all_mock_providers["claude"].chat.await_args_list[0].args[0]
    assert "collaboration round 1" in claude_first[0].content
    assert PROMPT in claude_first[1].content
    assert "[OpenAI - Collaboration round 1]\nAnswer from openai" in claude_first[1].content

    synthesis_messages = all_mock_providers["luxia"].chat.await_args.args[0]
    assert "Luxia, synthesize" in synthesis_messages[0].content
    assert "**Perplexity** (round 2):\nAnswer from perplexity" in synthesis_messages[1].content


async def test_failed_turn_substitutes_notice(sample_app_config, all_mock_providers, recorder):
    all_mock_providers["gemini"].chat = AsyncMock(return_value=None)

    session = await _coordinator(sample_app_config, all_mock_providers).run("s1", PROMPT, recorder)

    assert len(_turns(recorder)) == 17
    gemini_entries = [e for e in session.transcript if e.provider == "gemini"]
    assert len(gemini_entries) == 4
    assert all(e.failed for e in gemini_entries)
    assert all(e.content == "[Gemini: failed to generate a response]" for e in gemini_entries)
    assert isinstance(recorder.events[-1], Complete)


async def test_provider_exception_does_not_abort(sample_app_config, all_mock_providers, recorder):
    all_mock_providers["claude"].chat = AsyncMock(side_effect=RuntimeError("socket closed"))

    await _coordinator(sample_app_config, all_mock_providers).run("s1", PROMPT, recorder)

    assert len(_turns(recorder)) == 17
    assert isinstance(recorder.events[-1], Complete)


async def test_open_circuit_skips_provider_calls(sample_app_config, all_mock_providers, recorder):
    registry = CircuitBreakerRegistry(failure_threshold=1)
    all_mock_providers["perplexity"].chat = AsyncMock(return_value=None)

    await _coordinator(sample_app_config, all_mock_providers, registry).run("s1", PROMPT, recorder)

    # opened on the first failure, short-circuited for the remaining three rounds
    assert all_mock_providers["perplexity"].chat.await_count == 1
    assert registry.is_blocking("perplexity")
    assert isinstance(recorder.events[-1], Complete)


async def test_synthesis_falls_back_once(sample_app_config, all_mock_providers, recorder):
    all_mock_providers["luxia"].chat = AsyncMock(return_value=None)

    session = await _coordinator(sample_app_config, all_mock_providers).run("s1", PROMPT, recorder)

    turns = _turns(recorder)
    assert len(turns) == 18
    assert turns[-2:] == [("luxia", "synthesis", 1), ("claude", "synthesis", 1)]
    notice = "Luxia synthesis failed, synthesizing with Claude instead...\n\n"
    assert Chunk(notice, session_id="s1") in recorder.events
    synthesis = [e for e in session.transcript if e.phase == "synthesis"]
    assert [(e.provider, e.failed) for e in synthesis] == [("luxia", True), ("claude", False)]
    content = recorder.events[-1].content
    assert "## Luxia final synthesis\nLuxia synthesis failed, synthesizing with Claude instead..." in content
    assert content.endswith("## Claude final synthesis\nAnswer from claude")


async def test_both_synthesizers_fail_still_completes(sample_app_config, all_mock_providers, recorder):
    all_mock_providers["luxia"].chat = AsyncMock(return_value=None)
    all_mock_providers["claude"].chat = AsyncMock(side_effect=["c1", "c2", "c3", "c4", None])

    session = await _coordinator(sample_app_config, all_mock_providers).run("s1", PROMPT, recorder)

    failure = sample_app_config.messages.synthesis_failed
    assert Chunk(failure, session_id="s1") in recorder.events
    assert session.transcript[-1].failed
    assert isinstance(recorder.events[-1], Complete)


async def test_all_failed_is_error(sample_app_config, all_mock_providers, recorder):
    for provider in all_mock_providers.values():
        provider.chat = AsyncMock(return_value=None)

    await _coordinator(sample_app_config, all_mock_providers).run("s1", PROMPT, recorder)

    assert recorder.of_type(Complete) == []
    assert recorder.events[-1] == Error("All providers failed", session_id="s1")
    assert len(_turns(recorder)) == 18


async def test_missing_provider_is_failed_turn(sample_app_config, all_mock_providers, recorder):
    del all_mock_providers["openai"]

    session = await _coordinator(sample_app_config, all_mock_providers).run("s1", PROMPT, recorder)

    assert [e.failed for e in session.transcript if e.provider == "openai"] == [True] * 4
    assert isinstance(recorder.events[-1], Complete)


@pytest.mark.parametrize("session_id", ["", "   ", None])
async def test_blank_session_is_single_error(sample_app_config, all_mock_providers, recorder, session_id):
    result = await _coordinator(sample_app_config, all_mock_providers).run(session_id, PROMPT, recorder)

    assert result is None
    assert recorder.types() == ["error"]
    for provider in all_mock_providers.values():
        provider.chat.assert_not_called()


async def test_unexpected_error_ends_without_complete(sample_app_config, all_mock_providers, recorder):
    with patch("orchestra.debate.build_turn_messages", side_effect=RuntimeError("template broke")):
        result = await _coordinator(sample_app_config, all_mock_providers).run("s1", PROMPT, recorder)

    assert result is None
    errors = recorder.of_type(Error)
    assert len(errors) == 1
    assert "template broke" in errors[0].message
    assert recorder.of_type(Complete) == []


async def test_no_state_between_runs(sample_app_config, all_mock_providers):
    coordinator = _coordinator(sample_app_config, all_mock_providers)
    first = await coordinator.run("a", PROMPT, EventRecorder())
    second = await coordinator.run("b", PROMPT, EventRecorder())

    assert first is not second
    assert len(second.transcript) == 17


def test_build_turn_messages_without_transcript(sample_app_config):
    messages = build_turn_messages(PROMPT, [], "Claude", "debate", 2, sample_app_config)

    assert messages[0].role == "system"
    assert "Claude, debate round 2." in messages[0].content
    assert messages[1].content == f"User question: {PROMPT}\n\n"


def test_build_turn_messages_lists_every_entry(sample_app_config):
    transcript = [
        TranscriptEntry("openai", "First idea", "collaboration", 1),
        TranscriptEntry("claude", "Second idea", "collaboration", 1),
    ]
    messages = build_turn_messages(PROMPT, transcript, "Gemini", "collaboration", 1, sample_app_config)

    body = messages[1].content
    assert "Discussion so far:" in body
    assert body.index("[OpenAI - Collaboration round 1]\nFirst idea") < body.index(
        "[Claude - Collaboration round 1]\nSecond idea"
    )
