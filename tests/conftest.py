"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    DebateConfig,
    DefaultsConfig,
    IntentTable,
    MessagesConfig,
    ModelConfig,
    PromptsConfig,
    TypingConfig,
)
from orchestra.circuit_breaker import CircuitBreakerRegistry
from orchestra.events import StreamEvent
from orchestra.models import ChatMessage
from orchestra.providers.base import AIProvider

DISPLAY_NAMES = {
    "openai": "OpenAI",
    "claude": "Claude",
    "gemini": "Gemini",
    "perplexity": "Perplexity",
    "luxia": "Luxia",
}


class FakeClock:
    """Manually advanced monotonic clock for breaker tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class EventRecorder:
    """EventSink that keeps every event in order."""

    def __init__(self) -> None:
        self.events: list[StreamEvent] = []

    async def __call__(self, event: StreamEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list:
        return [e for e in self.events if isinstance(e, event_type)]

    def types(self) -> list[str]:
        return [e.type for e in self.events]


class MockProvider(AIProvider):
    """Test double AIProvider.

    ``chat`` is an AsyncMock returning ``response_content``; set its
    ``return_value`` to None (or a ``side_effect``) to simulate failures.
    Streaming doubles yield ``stream_chunks`` and then raise ``stream_error``
    if one is set.
    """

    def __init__(
        self,
        provider_name: str = "mock",
        response_content: str | None = "Mock response",
        streaming: bool = False,
        stream_chunks: list[str] | None = None,
        stream_error: Exception | None = None,
    ) -> None:
        self._name = provider_name
        self._response_content = response_content
        self.supports_streaming = streaming
        self.stream_chunks = stream_chunks if stream_chunks is not None else [str(response_content)]
        self.stream_error = stream_error
        self.stream_calls: list[list[ChatMessage]] = []
        # Shadow the class method with an AsyncMock at the instance level.
        self.chat = AsyncMock(return_value=response_content)  # type: ignore[method-assign]

    def name(self) -> str:
        return self._name

    def display_name(self) -> str:
        return DISPLAY_NAMES.get(self._name, self._name)

    def model_string(self) -> str:
        return "mock-model"

    async def _complete(self, messages: list[ChatMessage]) -> str:
        return str(self._response_content)

    async def stream_chat(self, messages: list[ChatMessage]):  # type: ignore[override]
        self.stream_calls.append(messages)
        for delta in self.stream_chunks:
            yield delta
        if self.stream_error is not None:
            raise self.stream_error


def _model(name: str, sdk: str, weight: float = 1.0, streaming: bool = False) -> ModelConfig:
    return ModelConfig(
        name=name,
        sdk=sdk,
        model=f"{name}-test-model",
        api_key_env=f"TEST_{name.upper()}_KEY",
        timeout_sec=30,
        max_tokens=1024,
        display_name=DISPLAY_NAMES[name],
        weight=weight,
        streaming=streaming,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        system="Today is {date}. You are {provider_name}. Sign with *{provider_name}*",
        collaboration="Today is {date}. {provider_name}, collaboration round {round}.",
        debate="Today is {date}. {provider_name}, debate round {round}.",
        synthesis="Today is {date}. {provider_name}, synthesize the discussion.",
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        fallback_provider="openai",
        output_dir=tmp_path / "output",
        mode="normal",
        timezone="UTC",
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
) -> AppConfig:
    models = {
        "openai": _model("openai", "openai", streaming=True),
        "claude": _model("claude", "anthropic"),
        "gemini": _model("gemini", "google"),
        "perplexity": _model("perplexity", "perplexity"),
        "luxia": _model("luxia", "luxia", weight=0.5, streaming=True),
    }
    return AppConfig(
        defaults=sample_defaults_config,
        models=models,
        prompts=sample_prompts_config,
        debate=DebateConfig(
            providers=["openai", "claude", "gemini", "perplexity"],
            synthesizer="luxia",
            fallback_synthesizer="claude",
        ),
        mix_providers=["openai", "claude", "gemini"],
        typing=TypingConfig(delay_sec=0.0, every=5),
        intents=IntentTable(
            keywords={
                "table": ["table", "comparison chart"],
                "research": ["research", "trend"],
                "code": ["code", "python", "script"],
                "summary": ["summary", "summarize"],
            },
            providers={
                "table": "claude",
                "research": "perplexity",
                "code": "openai",
                "summary": "gemini",
                "general": "openai",
            },
        ),
        messages=MessagesConfig(
            phase_labels={"collaboration": "Collaboration", "debate": "Debate", "synthesis": "Synthesis"},
        ),
        available_providers=set(models),
    )


@pytest.fixture
def registry() -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(failure_threshold=3, cooldown_sec=60.0)


@pytest.fixture
def all_mock_providers() -> dict[str, MockProvider]:
    return {name: MockProvider(name, f"Answer from {name}") for name in DISPLAY_NAMES}


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()
