"""Tests for request and notification payloads."""

import pytest
from pydantic import ValidationError

from chatstream.core.events import (
    AskOptions,
    AskType,
    ChatAlert,
    ChatFinish,
    ChatSuggestedResponses,
    ChatToken,
    notification_adapter,
    to_wire,
)


def test_ask_options_from_wire_shape():
    options = AskOptions.model_validate(
        {
            "type": 1,
            "chatContext": "[user](#message)\nearlier",
            "prompt": "hi",
            "imageURL": "https://img",
            "reply_deep": 2,
        }
    )
    assert options.type == AskType.SYDNEY
    assert options.chat_context.endswith("earlier")
    assert options.image_url == "https://img"
    assert options.reply_deep == 2


def test_ask_options_defaults_and_immutability():
    options = AskOptions(prompt="hi")
    assert options.type == AskType.SYDNEY
    assert options.reply_deep == 0
    with pytest.raises(ValidationError):
        options.prompt = "changed"


def test_ask_options_rejects_negative_depth():
    with pytest.raises(ValidationError):
        AskOptions(prompt="hi", reply_deep=-1)


def test_notification_roundtrip():
    payload = ChatSuggestedResponses(responses=["a", "b"])
    back = notification_adapter.validate_json(payload.model_dump_json())
    assert back == payload
    assert isinstance(notification_adapter.validate_python({"event": "chat_finish"}), ChatFinish)


def test_to_wire():
    assert to_wire(ChatAlert(message="oops")) == {"event": "chat_alert", "data": "oops"}
    assert to_wire(ChatToken(count=3)) == {"event": "chat_token", "data": 3}
    assert to_wire(ChatFinish()) == {"event": "chat_finish", "data": None}
