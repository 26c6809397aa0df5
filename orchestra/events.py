"""Tagged stream events and the ordered channel that carries them to a caller.

Every pipeline emits through a single ``EventSink`` coroutine, so events for
one request are serialized by construction. ``stream_events`` adapts a
producer into an async iterator for callers that prefer to pull.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, ClassVar, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Chunk:
    type: ClassVar[str] = "chunk"
    content: str
    session_id: str | None = None


@dataclass(frozen=True)
class AgentStart:
    type: ClassVar[str] = "agentStart"
    provider: str
    provider_name: str
    phase: str
    round: int
    session_id: str | None = None


@dataclass(frozen=True)
class AgentComplete:
    type: ClassVar[str] = "agentComplete"
    provider: str
    provider_name: str
    phase: str
    round: int
    content: str = ""
    session_id: str | None = None


@dataclass(frozen=True)
class PhaseChange:
    type: ClassVar[str] = "phase"
    phase: str
    session_id: str | None = None


@dataclass(frozen=True)
class ConversationId:
    type: ClassVar[str] = "conversationId"
    conversation_id: str | int
    session_id: str | None = None


@dataclass(frozen=True)
class Complete:
    type: ClassVar[str] = "complete"
    content: str
    provider: str | None = None
    session_id: str | None = None


@dataclass(frozen=True)
class Error:
    type: ClassVar[str] = "error"
    message: str
    session_id: str | None = None


StreamEvent = Union[Chunk, AgentStart, AgentComplete, PhaseChange, ConversationId, Complete, Error]
EventSink = Callable[[StreamEvent], Awaitable[None]]

_WIRE_KEYS = {
    "provider_name": "providerName",
    "conversation_id": "conversationId",
    "session_id": "sessionId",
}


def to_dict(event: StreamEvent) -> dict[str, Any]:
    """Wire shape of an event: camelCase keys, ``type`` tag first, unset session dropped."""
    payload: dict[str, Any] = {"type": event.type}
    for key, value in vars(event).items():
        if key == "session_id" and value is None:
            continue
        payload[_WIRE_KEYS.get(key, key)] = value
    return payload


_CLOSED = object()

# Producers keep running after a consumer walks away; hold a reference so
# the loop does not drop them mid-flight.
_background_tasks: set[asyncio.Task] = set()


class EventChannel:
    """Single-producer FIFO of stream events."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()

    async def emit(self, event: StreamEvent) -> None:
        await self._queue.put(event)

    def close(self) -> None:
        self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


async def stream_events(
    produce: Callable[[EventSink], Awaitable[Any]],
) -> AsyncIterator[StreamEvent]:
    """Run ``produce(emit)`` in the background and yield its events in order.

    If the consumer stops iterating early the producer is left to finish;
    in-flight provider calls are not cancelled.
    """
    channel = EventChannel()

    async def _run() -> None:
        try:
            await produce(channel.emit)
        finally:
            channel.close()

    task = asyncio.create_task(_run())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    async for event in channel:
        yield event
    await task
