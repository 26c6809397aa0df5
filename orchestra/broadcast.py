"""In-memory publish/subscribe binding between debate sessions and listeners."""

import asyncio
import logging

from orchestra.debate import CoordinatorFatal, DebateCoordinator
from orchestra.events import StreamEvent
from orchestra.models import DebateSession

logger = logging.getLogger(__name__)


class SessionBroadcaster:
    """Routes events published for a session id to every queue bound to it."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[asyncio.Queue]] = {}

    def bind(self, session_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(session_id, []).append(queue)
        return queue

    def unbind(self, session_id: str, queue: asyncio.Queue | None = None) -> None:
        if queue is None:
            self._subscribers.pop(session_id, None)
            return
        queues = self._subscribers.get(session_id, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._subscribers.pop(session_id, None)

    def is_bound(self, session_id: str) -> bool:
        return bool(self._subscribers.get(session_id))

    async def publish(self, session_id: str, event: StreamEvent) -> None:
        for queue in self._subscribers.get(session_id, []):
            await queue.put(event)


async def start_debate(
    broadcaster: SessionBroadcaster,
    coordinator: DebateCoordinator,
    session_id: str,
    user_prompt: str,
) -> DebateSession | None:
    """Run a debate and publish its events to ``session_id``.

    Raises:
        CoordinatorFatal: If no listener is bound to the session.
    """
    if not session_id or not broadcaster.is_bound(session_id):
        raise CoordinatorFatal(f"Session '{session_id}' has no bound channel")

    async def emit(event: StreamEvent) -> None:
        await broadcaster.publish(session_id, event)

    logger.info("Starting debate for session %s", session_id)
    return await coordinator.run(session_id, user_prompt, emit)
