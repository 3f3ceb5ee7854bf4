"""Downstream writers.

The decoder writes encoded frames to any object with async ``write`` and
``close`` methods. :class:`QueueStreamWriter` bridges the decoder to a
streaming HTTP response with bounded buffering, so a slow client slows
the decoder down instead of growing memory.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from toolstream.settings import get_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

_CLOSED = object()


@runtime_checkable
class StreamWriter(Protocol):
    """Sink for client-facing frames."""

    async def write(self, frame: str) -> None: ...

    async def close(self) -> None: ...


class QueueStreamWriter:
    """Bounded queue writer consumed by iterating over it.

    Usage::

        writer = QueueStreamWriter()
        task = asyncio.create_task(run_turn(..., writer=writer))
        return StreamingResponse(writer, media_type="text/event-stream")

    ``write`` blocks while the queue is full. ``close`` is idempotent and
    ends iteration once buffered frames are drained. ``abort`` is called by
    the consumer when the client goes away (it stops iterating first):
    buffered frames are discarded, which releases a blocked ``write``, and
    later writes are dropped.
    """

    def __init__(self, maxsize: int | None = None) -> None:
        if maxsize is None:
            maxsize = get_settings().writer_queue_size
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._aborted = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def aborted(self) -> bool:
        return self._aborted

    async def write(self, frame: str) -> None:
        if self._closed:
            logger.debug("Dropping frame written after close")
            return
        await self._queue.put(frame)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._aborted:
            await self._queue.put(_CLOSED)

    def abort(self) -> None:
        """Stop accepting frames and discard anything buffered."""
        self._aborted = True
        self._closed = True
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]


class BufferedWriter:
    """Writer that keeps every frame in memory.

    For non-streaming callers that want the frames after the turn.
    """

    def __init__(self) -> None:
        self.frames: list[str] = []
        self.closed = False

    async def write(self, frame: str) -> None:
        if self.closed:
            return
        self.frames.append(frame)

    async def close(self) -> None:
        self.closed = True
