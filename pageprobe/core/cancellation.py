"""Cooperative cancellation token shared by a crawl job and its services.

The job manager owns one ``CancelToken`` per running job and hands it down to
the fetcher and the link checker. Every suspension point inside a crawl goes
through the token so a stop request interrupts retry waits and in-flight
requests alike.

Example:
    >>> token = CancelToken()
    >>> response = await token.run(client.get(url))
    >>> await token.sleep(2.0)  # returns early if cancelled
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Awaitable
from typing import TypeVar

from pageprobe.core.errors import CrawlCancelledError

T = TypeVar("T")


class CancelToken:
    """One-shot cancellation signal backed by an ``asyncio.Event``."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._cancelled = False
        self._loop: asyncio.AbstractEventLoop | None = None
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        self._loop_thread = threading.get_ident() if self._loop else None

    @property
    def cancelled(self) -> bool:
        """Whether ``cancel()`` has been called."""
        return self._cancelled

    def cancel(self) -> None:
        """Signal cancellation. Idempotent and safe to call from any thread."""
        if self._cancelled:
            return
        self._cancelled = True
        if (
            self._loop is not None
            and self._loop_thread != threading.get_ident()
            and not self._loop.is_closed()
        ):
            self._loop.call_soon_threadsafe(self._event.set)
        else:
            self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise ``CrawlCancelledError`` if the token has been cancelled."""
        if self._cancelled:
            raise CrawlCancelledError()

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds unless cancelled first.

        Raises:
            CrawlCancelledError: If the token fires before the delay elapses
        """
        self.raise_if_cancelled()
        if delay > 0:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                return
        self.raise_if_cancelled()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        The operation is cancelled and awaited to completion before
        ``CrawlCancelledError`` is raised, so its resources are released.

        Raises:
            CrawlCancelledError: If the token fires before the operation ends
        """
        operation = asyncio.ensure_future(awaitable)
        if self._cancelled:
            operation.cancel()
            await asyncio.gather(operation, return_exceptions=True)
            raise CrawlCancelledError()

        watcher = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait(
                {operation, watcher}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            operation.cancel()
            await asyncio.gather(operation, return_exceptions=True)
            raise
        finally:
            watcher.cancel()

        if not operation.done():
            operation.cancel()
            await asyncio.gather(operation, return_exceptions=True)
            raise CrawlCancelledError()
        return operation.result()
