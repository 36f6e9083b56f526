"""Tests for the Redis event bus (serialization, publish and chat_stop with mocked Redis)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from chatstream.core.bus import EventBus, _is_stop_request, _serialize, channel_for
from chatstream.core.events import ChatAppend, ChatToken, notification_adapter


class FakePubSub:
    def __init__(self, messages):
        self._messages = messages
        self.subscribe = AsyncMock()
        self.unsubscribe = AsyncMock()
        self.close = AsyncMock()

    async def listen(self):
        for message in self._messages:
            yield message


def mock_client(pubsub=None):
    client = MagicMock()
    client.ping = AsyncMock()
    client.publish = AsyncMock()
    client.close = AsyncMock()
    client.pubsub = MagicMock(return_value=pubsub or FakePubSub([]))
    return client


def test_serialize_roundtrip():
    raw = _serialize(ChatAppend(text="hi"))
    assert notification_adapter.validate_json(raw) == ChatAppend(text="hi")


def test_is_stop_request():
    assert _is_stop_request(b'{"event": "chat_stop"}') is True
    assert _is_stop_request('{"event": "chat_stop"}') is True
    assert _is_stop_request(b"{}") is False
    assert _is_stop_request(b"not json") is False
    assert _is_stop_request(None) is False


def test_channel_for():
    assert channel_for("s1", "chat_append") == "chatstream:s1:chat_append"


@pytest.mark.asyncio
async def test_emit_publishes_on_session_channel():
    client = mock_client()
    with patch("chatstream.core.bus.aioredis") as m:
        m.from_url = MagicMock(return_value=client)
        bus = EventBus("redis://fake:6379/0", session_id="s1")
        await bus.emit(ChatToken(count=7))
        await bus.disconnect()
    first = client.publish.await_args_list[0].args
    assert first[0] == "chatstream:s1:chat_token"
    assert notification_adapter.validate_json(first[1]) == ChatToken(count=7)
    client.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_listener_calls_stop_handlers_and_survives_failures():
    pubsub = FakePubSub(
        [
            {"type": "subscribe", "channel": b"chatstream:s1:chat_stop", "data": 1},
            {"type": "message", "channel": b"chatstream:s1:chat_stop", "data": b"garbage"},
            {"type": "message", "channel": b"chatstream:s1:chat_stop", "data": b'{"event": "chat_stop"}'},
        ]
    )
    client = mock_client(pubsub)
    calls = []

    def broken():
        raise RuntimeError("boom")

    with patch("chatstream.core.bus.aioredis") as m:
        m.from_url = MagicMock(return_value=client)
        bus = EventBus("redis://fake:6379/0", session_id="s1")
        bus.on_stop(broken)
        bus.on_stop(lambda: calls.append("stop"))
        await bus.run_listener()
    assert calls == ["stop"]
    pubsub.subscribe.assert_awaited_once_with("chatstream:s1:chat_stop")
    pubsub.unsubscribe.assert_awaited_once()


@pytest.mark.asyncio
async def test_bus_with_real_redis():
    try:
        import redis.asyncio as aioredis

        r = aioredis.from_url("redis://localhost:6379/12")
        await r.ping()
        await r.close()
    except Exception:
        pytest.skip("Redis not available")
    bus = EventBus("redis://localhost:6379/12", session_id="test")
    await bus.connect()
    await bus.emit(ChatAppend(text="test"))
    await bus.disconnect()
