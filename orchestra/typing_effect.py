"""Replay a fully buffered response as word-sized chunks."""

import asyncio

from orchestra.events import Chunk, EventSink


def iter_words(text: str) -> list[str]:
    """Split on single spaces, keeping each separator on the word before it.

    ``"".join(iter_words(text)) == text`` for any text.
    """
    words = text.split(" ")
    last = len(words) - 1
    pieces = [word + " " if i < last else word for i, word in enumerate(words)]
    return [piece for piece in pieces if piece]


async def replay(
    text: str,
    emit: EventSink,
    delay_sec: float = 0.0,
    every: int = 5,
    session_id: str | None = None,
) -> None:
    """Emit ``text`` word by word, pausing ``delay_sec`` every ``every`` words."""
    for i, piece in enumerate(iter_words(text)):
        await emit(Chunk(piece, session_id=session_id))
        if delay_sec > 0 and every > 0 and i % every == 0:
            await asyncio.sleep(delay_sec)
