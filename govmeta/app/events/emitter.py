from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional, Protocol

from govmeta.app.events.models import TERMINAL_EVENTS, LoadEvent


class LoadEventEmitter(Protocol):
    """
    Interface for broadcasting load observations.

    Implementations must be non-blocking and fail-safe: an emission
    failure must never fail a load.
    """

    async def emit(self, event: LoadEvent) -> None:
        ...


class NullEventEmitter:
    """No-op emitter used when nobody is listening."""

    async def emit(self, event: LoadEvent) -> None:
        return


class MemoryQueueEventEmitter:
    """
    In-memory async emitter.

    Single consumer, ordered, closes itself after a terminal event.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[LoadEvent]] = asyncio.Queue()
        self._closed = False

    async def emit(self, event: LoadEvent) -> None:
        if self._closed:
            return

        await self._queue.put(event)

        if event.event_type in TERMINAL_EVENTS:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def stream(self) -> AsyncIterator[LoadEvent]:
        """Yield emitted events in order until the emitter closes."""
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
