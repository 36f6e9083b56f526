"""Raw event sources: ordered, single-consumer conduits of RawFrame.

Streaming contract: a source is an async iterator of ``RawFrame``. It ends when
the backend closes the stream. A transport failure is delivered as one error
frame, after which the source ends too.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Iterable, Protocol, Union, runtime_checkable

from chatstream.core.events import AskOptions
from chatstream.core.frames import RECORD_SEPARATOR, RawFrame, split_records

logger = logging.getLogger(__name__)

_CLOSED = object()


@runtime_checkable
class FrameSource(Protocol):
    """Protocol for producers of raw protocol frames."""

    def __aiter__(self) -> AsyncIterator[RawFrame]:
        ...


SourceFactory = Callable[[AskOptions], Awaitable[FrameSource]]


class QueueFrameSource:
    """Single-producer/single-consumer frame conduit backed by asyncio.Queue."""

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._buffer = ""
        self._closed = False

    def feed(self, payload: str) -> None:
        if self._closed:
            raise RuntimeError("feed() after close()")
        self._queue.put_nowait(RawFrame.data(payload))

    def feed_records(self, chunk: str) -> int:
        """Feed a chunk of record-separator delimited text; incomplete records wait for more."""
        records, self._buffer = split_records(self._buffer + chunk)
        for record in records:
            self.feed(record)
        return len(records)

    def fail(self, error: str) -> None:
        if self._closed:
            raise RuntimeError("fail() after close()")
        self._queue.put_nowait(RawFrame.failure(error))
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._buffer.strip():
            logger.warning("dropping incomplete record at close", extra={"size": len(self._buffer)})
        self._buffer = ""
        self._queue.put_nowait(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[RawFrame]:
        return self

    async def __anext__(self) -> RawFrame:
        item = await self._queue.get()
        if item is _CLOSED:
            # keep the sentinel so repeated reads stay terminal
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item  # type: ignore[return-value]


class ReplayFrameSource:
    """Replays recorded frame payloads in order. Yields control between frames."""

    def __init__(self, payloads: Iterable[str]) -> None:
        self._payloads = list(payloads)

    @classmethod
    def from_text(cls, text: str) -> "ReplayFrameSource":
        """Accept either record-separator delimited frames or one JSON frame per line."""
        if RECORD_SEPARATOR in text:
            records, tail = split_records(text)
            if tail.strip():
                records.append(tail)
            return cls(records)
        return cls(line for line in text.splitlines() if line.strip())

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ReplayFrameSource":
        return cls.from_text(Path(path).read_text(encoding="utf-8"))

    @classmethod
    def from_objects(cls, frames: Iterable[object]) -> "ReplayFrameSource":
        return cls(json.dumps(f, ensure_ascii=False) for f in frames)

    def __len__(self) -> int:
        return len(self._payloads)

    async def __aiter__(self) -> AsyncIterator[RawFrame]:
        for payload in self._payloads:
            yield RawFrame.data(payload)
            await asyncio.sleep(0)
