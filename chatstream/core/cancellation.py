"""Cancellation scope for one request's interpreter loop (the chat_stop signal)."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import AsyncIterator, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_END = object()


async def _next(iterator: AsyncIterator[T]) -> object:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END


class CancelScope:
    """Stop signal for one request. stop() is idempotent and safe from any thread."""

    def __init__(self) -> None:
        self._stopped = False
        self._lock = threading.Lock()
        self._event = asyncio.Event()
        try:
            self._loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            # created outside a loop: stop() from another thread needs bind() first
            self._loop = None

    @property
    def stopped(self) -> bool:
        return self._stopped

    def bind(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Attach to the loop running the interpreter so other threads can wake it."""
        self._loop = loop or asyncio.get_running_loop()
        if self._stopped:
            self._event.set()

    def stop(self) -> bool:
        """Request stop. Returns True only for the call that actually stopped the scope.

        Calls from other threads are safe once the scope is bound to a loop, which
        happens at construction inside a running loop or via bind().
        """
        with self._lock:
            if self._stopped:
                return False
            self._stopped = True
        loop = self._loop
        if loop is None:
            self._event.set()
        else:
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is loop:
                self._event.set()
            elif not loop.is_closed():
                loop.call_soon_threadsafe(self._event.set)
        logger.debug("cancel scope stopped")
        return True

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, source: AsyncIterator[T]) -> AsyncIterator[T]:
        """Iterate source until it ends or stop() is called, whichever comes first.

        Stop is checked before every read and wins over a frame that became
        available at the same time.
        """
        if self._loop is None:
            self.bind()
        iterator = source.__aiter__()
        stop_waiter = asyncio.ensure_future(self.wait())
        read: Optional[asyncio.Future[object]] = None
        try:
            while not self._stopped:
                read = asyncio.ensure_future(_next(iterator))
                await asyncio.wait({read, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
                if self._stopped:
                    read.cancel()
                    await asyncio.gather(read, return_exceptions=True)
                    return
                item = read.result()
                if item is _END:
                    return
                yield item  # type: ignore[misc]
        finally:
            pending = [stop_waiter]
            if read is not None and not read.done():
                pending.append(read)
            for future in pending:
                future.cancel()
            # the read must be finished before the source can be closed
            await asyncio.gather(*pending, return_exceptions=True)
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
