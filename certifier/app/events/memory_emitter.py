from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from certifier.app.events.models import IssuanceEvent

logger = logging.getLogger(__name__)


class MemoryQueueEventEmitter:
    """
    In-memory event emitter with an async consumer side.

    Properties:
    - single-consumer
    - never blocks the emitting session
    - deterministic ordering
    - terminates cleanly on close()
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[IssuanceEvent]] = asyncio.Queue()
        self._closed = False

    def emit(self, event: IssuanceEvent) -> None:
        if self._closed:
            return

        try:
            self._queue.put_nowait(event)
        except Exception:
            # Observability must never break issuance.
            logger.debug("Dropped event %s", event.event_type, exc_info=True)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def stream(self) -> AsyncIterator[IssuanceEvent]:
        """
        Async generator yielding emitted events in order until close().
        """
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
