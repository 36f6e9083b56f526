"""Event Bus: Redis pub/sub between a chat session and its UI.

Notifications go out on ``chatstream:<session>:<event>``; the UI's chat_stop
arrives on ``chatstream:<session>:chat_stop``.
"""

from __future__ import annotations

import json
import logging
from typing import Callable

import redis.asyncio as aioredis

from chatstream.core.events import EVENT_CHAT_STOP, Notification

logger = logging.getLogger(__name__)

CH_PREFIX = "chatstream"


def channel_for(session_id: str, event: str) -> str:
    return f"{CH_PREFIX}:{session_id}:{event}"


def _serialize(payload: Notification) -> str:
    return payload.model_dump_json()


def _is_stop_request(raw: object) -> bool:
    """Control payloads are JSON objects naming the event: {"event": "chat_stop"}."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return False
    return isinstance(data, dict) and data.get("event") == EVENT_CHAT_STOP


class EventBus:
    """Redis-backed notification sink for one session, plus the chat_stop listener."""

    def __init__(self, redis_url: str, session_id: str = "default") -> None:
        self._redis_url = redis_url
        self._session_id = session_id
        self._client: aioredis.Redis | None = None
        self._pubsub: aioredis.client.PubSub | None = None
        self._stop_handlers: list[Callable[[], object]] = []
        self._running = False

    @property
    def stop_channel(self) -> str:
        return channel_for(self._session_id, EVENT_CHAT_STOP)

    async def connect(self) -> None:
        if self._client is None:
            self._client = aioredis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=False,
            )
            await self._client.ping()
        logger.info("EventBus connected to Redis", extra={"session": self._session_id})

    async def disconnect(self) -> None:
        if self._pubsub:
            await self._pubsub.close()
            self._pubsub = None
        if self._client:
            await self._client.close()
            self._client = None
        self._running = False

    async def _ensure_connected(self) -> None:
        if self._client is None:
            await self.connect()

    async def emit(self, notification: Notification) -> None:
        await self._ensure_connected()
        await self._client.publish(
            channel_for(self._session_id, notification.event), _serialize(notification)
        )
        logger.debug("published %s", notification.event, extra={"session": self._session_id})

    def on_stop(self, handler: Callable[[], object]) -> None:
        self._stop_handlers.append(handler)

    async def run_listener(self) -> None:
        """Listen for chat_stop and call the stop handlers. Blocks until stop()."""
        await self._ensure_connected()
        self._pubsub = self._client.pubsub()
        await self._pubsub.subscribe(self.stop_channel)
        self._running = True
        logger.info("EventBus listener started", extra={"channel": self.stop_channel})
        try:
            async for message in self._pubsub.listen():
                if not self._running:
                    break
                if message["type"] != "message":
                    continue
                if not _is_stop_request(message.get("data")):
                    logger.warning("ignoring control message", extra={"data": message.get("data")})
                    continue
                for handler in self._stop_handlers:
                    try:
                        handler()
                    except Exception as e:
                        logger.exception("stop handler failed: %s", e)
        finally:
            await self._pubsub.unsubscribe()
            self._running = False

    def stop(self) -> None:
        self._running = False
