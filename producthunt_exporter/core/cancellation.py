"""Cooperative cancellation for a single export run."""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from producthunt_exporter.exceptions import ExportCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancelToken:
    """
    Cancellation flag threaded through the pipeline's suspension points.

    The network call and every backoff sleep go through ``guard``/``sleep`` so a
    disconnect or timeout interrupts them instead of waiting them out.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            logger.info(f"Export cancellation requested: {reason}")
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExportCancelled(f"Export cancelled: {self.reason}")

    async def sleep(self, seconds: float) -> None:
        """
        Sleep for ``seconds`` unless cancelled first.

        Raises:
            ExportCancelled: If the token is cancelled before or during the sleep.
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable``, abandoning it if the token is cancelled meanwhile.

        Raises:
            ExportCancelled: If cancellation wins the race.
        """
        self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Abandoned request failed after cancellation: {e}")
        self.raise_if_cancelled()
        # unreachable unless the event was cleared behind our back
        raise ExportCancelled("Export cancelled")
