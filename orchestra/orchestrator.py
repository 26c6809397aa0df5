"""Streaming orchestration: pick a response mode and emit an ordered event stream.

Modes:
    normal  one provider, chosen by override or weighted selection
    mix     a fixed provider list, visited one after another, framed per provider
    a2a     the multi-agent debate run by ``DebateCoordinator``

Each request is one sequential pipeline; nothing fans out concurrently, so
events reach the caller in emission order.
"""

import logging
import random
from collections.abc import AsyncIterator
from typing import Protocol

from config.config_loader import AppConfig
from orchestra.circuit_breaker import CircuitBreakerRegistry, CircuitOpenError
from orchestra.debate import DebateCoordinator
from orchestra.events import Chunk, Complete, ConversationId, Error, EventSink, StreamEvent, stream_events
from orchestra.intent import analyze_intent
from orchestra.models import ChatMessage, ChatRequest
from orchestra.prompts import today, with_system_prompt
from orchestra.providers.base import AIProvider, ProviderError
from orchestra.providers.factory import build_all_providers, provider_settings
from orchestra.selector import ProviderSelector
from orchestra.typing_effect import replay

logger = logging.getLogger(__name__)

MODES = ("normal", "mix", "a2a")
BLOCK_FOOTER = "\n\n---\n\n"


class ConversationStore(Protocol):
    """Persistence collaborator for finished assistant messages."""

    async def add_message(
        self,
        conversation_id: str | int,
        role: str,
        content: str,
        provider_tag: str | None,
    ) -> None: ...


class StreamOrchestrator:
    """Dispatches chat requests to one of the three response modes."""

    def __init__(
        self,
        providers: dict[str, AIProvider],
        selector: ProviderSelector,
        breakers: CircuitBreakerRegistry,
        config: AppConfig,
        coordinator: DebateCoordinator | None = None,
        store: ConversationStore | None = None,
    ) -> None:
        self._providers = providers
        self._selector = selector
        self._breakers = breakers
        self._config = config
        self._coordinator = coordinator or DebateCoordinator(providers, breakers, config)
        self._store = store

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        providers: dict[str, AIProvider] | None = None,
        store: ConversationStore | None = None,
        rng: random.Random | None = None,
    ) -> "StreamOrchestrator":
        """Wire providers, a fresh breaker registry and the selector from config."""
        if providers is None:
            providers = build_all_providers(config)
        breakers = CircuitBreakerRegistry()
        selector = ProviderSelector(
            provider_settings(config, providers),
            breakers,
            fallback_provider=config.defaults.fallback_provider,
            rng=rng,
        )
        return cls(providers, selector, breakers, config, store=store)

    @property
    def breakers(self) -> CircuitBreakerRegistry:
        return self._breakers

    def stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        """Pull-style view of ``orchestrate``."""
        return stream_events(lambda emit: self.orchestrate(request, emit))

    async def orchestrate(self, request: ChatRequest, emit: EventSink) -> None:
        """Produce the response for ``request``, emitting events in order. Never raises."""
        try:
            if request.new_conversation and request.conversation_id is not None:
                await emit(ConversationId(request.conversation_id, session_id=request.session_id))

            mode = request.mode or self._config.defaults.mode
            logger.info("Orchestration start: mode=%s provider=%s", mode, request.preferred_provider)

            if mode == "a2a":
                await self._run_a2a(request, emit)
            elif mode == "mix":
                await self._run_mix(request, emit)
            elif mode == "normal":
                await self._run_single(request, emit)
            else:
                raise ValueError(f"Unknown chat mode: {mode}")
        except Exception as exc:
            logger.exception("Stream orchestration error")
            await emit(Error(str(exc), session_id=request.session_id))

    def resolve_provider(self, request: ChatRequest) -> str:
        """Explicit override wins; otherwise intent hint plus weighted selection."""
        preferred = request.preferred_provider
        if preferred and preferred != "auto":
            return preferred
        intent = analyze_intent(request.user_prompt, self._config.intents)
        provider_id = self._selector.select_provider(intent.preferred_provider)
        logger.info("Auto-selected provider %s (intent=%s)", provider_id, intent.category)
        return provider_id

    def _messages_for(self, provider_id: str, messages: list[ChatMessage]) -> list[ChatMessage]:
        system = self._config.prompts.system.format(
            date=today(self._config.defaults.timezone),
            provider_name=self._config.display_name(provider_id),
        )
        return with_system_prompt(messages, system)

    async def _produce(
        self,
        provider: AIProvider,
        messages: list[ChatMessage],
        emit: EventSink,
        session_id: str | None = None,
    ) -> str:
        """Emit one provider's answer as chunks and return the full text.

        Streaming providers forward deltas as they arrive. A stream that fails
        before yielding anything is retried once as a buffered call, whose
        text is replayed word by word.

        Raises:
            ProviderError: When no usable text was produced, or the stream broke mid-way.
        """
        if provider.supports_streaming:
            parts: list[str] = []
            try:
                async for delta in provider.stream_chat(messages):
                    parts.append(delta)
                    await emit(Chunk(delta, session_id=session_id))
            except ProviderError as exc:
                if parts:
                    raise
                logger.warning("%s stream failed before any output, trying buffered call: %s", provider.name(), exc)
            else:
                if parts:
                    return "".join(parts)

        text = await provider.chat(messages)
        if not text:
            raise ProviderError(provider.name(), "No response")
        await replay(text, emit, self._config.typing.delay_sec, self._config.typing.every, session_id=session_id)
        return text

    def _failure_text(self, provider_id: str, exc: Exception) -> str:
        if isinstance(exc, CircuitOpenError):
            return self._config.messages.circuit_open.format(provider_name=self._config.display_name(provider_id))
        return str(exc)

    async def _finish(self, request: ChatRequest, content: str, provider_tag: str | None, emit: EventSink) -> None:
        await self._persist(request, content, provider_tag)
        await emit(Complete(content, provider=provider_tag, session_id=request.session_id))

    async def _persist(self, request: ChatRequest, content: str, provider_tag: str | None) -> None:
        if self._store is None or request.conversation_id is None:
            return
        try:
            await self._store.add_message(request.conversation_id, "assistant", content, provider_tag)
            logger.info("Conversation %s saved", request.conversation_id)
        except Exception as exc:
            logger.error("Failed to save AI response for %s: %s", request.conversation_id, exc)

    async def _run_single(self, request: ChatRequest, emit: EventSink) -> None:
        provider_id = self.resolve_provider(request)
        provider = self._providers.get(provider_id)
        sid = request.session_id
        if provider is None:
            logger.error("Provider %s is not available", provider_id)
            await emit(Error(f"No response from {provider_id}: provider is not available", session_id=sid))
            return

        messages = self._messages_for(provider_id, request.messages)

        async def action() -> str:
            return await self._produce(provider, messages, emit, session_id=sid)

        async def fallback(exc: Exception) -> None:
            await emit(Error(self._failure_text(provider_id, exc), session_id=sid))
            return None

        text = await self._breakers.get(provider_id).execute(action, fallback)
        if text is not None:
            await self._finish(request, text, provider_id, emit)

    async def _run_mix(self, request: ChatRequest, emit: EventSink) -> None:
        sid = request.session_id
        blocks: list[str] = []

        async def record(event: StreamEvent) -> None:
            if isinstance(event, Chunk):
                blocks.append(event.content)
            await emit(event)

        await record(Chunk(self._config.messages.mix_header, session_id=sid))

        succeeded = 0
        for provider_id in self._config.mix_providers:
            await record(Chunk(f"### {self._config.display_name(provider_id)}\n\n", session_id=sid))

            provider = self._providers.get(provider_id)
            if provider is None:
                logger.warning("Mix of agents: %s is not available", provider_id)
                await record(Chunk(f"*{self._config.messages.no_response}*{BLOCK_FOOTER}", session_id=sid))
                continue

            messages = self._messages_for(provider_id, request.messages)

            async def action(provider: AIProvider = provider, messages: list[ChatMessage] = messages) -> str:
                return await self._produce(provider, messages, record, session_id=sid)

            async def fallback(exc: Exception, provider_id: str = provider_id) -> None:
                logger.warning("Mix of agents: %s failed: %s", provider_id, exc)
                await record(Chunk(f"\n\n*{self._failure_text(provider_id, exc)}*{BLOCK_FOOTER}", session_id=sid))
                return None

            text = await self._breakers.get(provider_id).execute(action, fallback)
            if text is not None:
                succeeded += 1
                await record(Chunk(BLOCK_FOOTER, session_id=sid))

        if succeeded == 0:
            await emit(Error(self._config.messages.all_failed, session_id=sid))
            return

        await self._finish(request, "".join(blocks), "mix", emit)

    async def _run_a2a(self, request: ChatRequest, emit: EventSink) -> None:
        async def relay(event: StreamEvent) -> None:
            if isinstance(event, Complete):
                await self._persist(request, event.content, event.provider)
            await emit(event)

        await self._coordinator.run(request.session_id, request.user_prompt, relay)
