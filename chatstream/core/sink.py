"""Notification sinks: where the interpreter pushes chat_* events."""

from __future__ import annotations

import json
import sys
from typing import Optional, Protocol, TextIO, runtime_checkable

from chatstream.core.events import Notification, to_wire


@runtime_checkable
class NotificationSink(Protocol):
    """Fire-and-forget, order-preserving delivery of notifications."""

    async def emit(self, notification: Notification) -> None:
        ...


class MemorySink:
    """Keeps every notification in order."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    async def emit(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def events(self) -> list[str]:
        return [n.event for n in self.notifications]

    def of(self, event: str) -> list[Notification]:
        return [n for n in self.notifications if n.event == event]


class StreamSink:
    """Writes one JSON line per notification: {"event": ..., "data": ...}."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream or sys.stdout

    async def emit(self, notification: Notification) -> None:
        self._stream.write(json.dumps(to_wire(notification), ensure_ascii=False) + "\n")
        self._stream.flush()
