"""
Progress reporters: sinks the export pipeline pushes status events into.

- ``NullProgressReporter`` discards events (buffered HTTP transport)
- ``LoggingProgressReporter`` logs each event (CLI)
- ``StreamingProgressReporter`` hands events to an SSE response one at a time
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional, Tuple

from producthunt_exporter.models.events import CompleteEvent, ErrorEvent, ProgressEvent

logger = logging.getLogger(__name__)


class ProgressReporter(ABC):
    """Append-only sink for progress events."""

    @abstractmethod
    async def emit(self, event: ProgressEvent) -> None:
        """Deliver one event. Returns once the sink has accepted it."""
        raise NotImplementedError

    async def close(self) -> None:
        """Signal that no further events will be emitted."""
        return None


class NullProgressReporter(ProgressReporter):
    """Reporter that drops every event."""

    async def emit(self, event: ProgressEvent) -> None:
        logger.debug(f"[{event.type}] {event.message}")


class LoggingProgressReporter(ProgressReporter):
    """Reporter that writes events to the log; keeps them for inspection as well."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger
        self.events: List[ProgressEvent] = []

    async def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)
        if isinstance(event, ErrorEvent):
            self.log.error(f"[{event.type}] {event.message}")
        elif isinstance(event, CompleteEvent):
            self.log.info(f"[{event.type}] {event.message} ({event.filename})")
        else:
            self.log.info(f"[{event.type}] {event.message}")


def format_sse(event: ProgressEvent) -> str:
    """Frame an event as a server-sent-events ``data:`` line."""
    return f"data: {event.to_json()}\n\n"


class StreamingProgressReporter(ProgressReporter):
    """
    Reporter backing a live event stream.

    ``emit`` does not return until the consumer has written the event to the
    transport, so events are strictly ordered with respect to the pipeline's
    next fetch.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Optional[Tuple[ProgressEvent, asyncio.Future]]]" = asyncio.Queue()
        self._closed = False

    async def emit(self, event: ProgressEvent) -> None:
        if self._closed:
            logger.warning(f"Dropping {event.type} event emitted after the stream closed")
            return
        delivered = asyncio.get_running_loop().create_future()
        await self._queue.put((event, delivered))
        await delivered

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def stream(self) -> AsyncIterator[str]:
        """
        Yield SSE-framed events until ``close`` is called.

        Each event's delivery future is resolved only after the framed chunk
        has been handed to (and accepted by) the response.
        """
        try:
            while True:
                item = await self._queue.get()
                if item is None:
                    return
                event, delivered = item
                try:
                    yield format_sse(event)
                finally:
                    if not delivered.done():
                        delivered.set_result(None)
        finally:
            self._closed = True
            self._release_pending()

    def _release_pending(self) -> None:
        """Unblock emitters still waiting after the consumer went away."""
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not None and not item[1].done():
                item[1].set_result(None)
