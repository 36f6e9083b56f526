"""Frame builders shared by the tests."""

import json


def count_words(text: str) -> int:
    return len(text.split())


def answer(text=None, *, cursor=False, origin=None, suggestions=None, **extra):
    """A type 1 frame on the main answer channel."""
    message = {"messageType": "", **extra}
    if text is not None:
        message["text"] = text
    if origin is not None:
        message["contentOrigin"] = origin
    if suggestions is not None:
        message["suggestedResponses"] = [{"text": s} for s in suggestions]
    argument = {"messages": [message]}
    if cursor:
        argument["cursor"] = {"j": "$['a7613cd6-1'].adaptiveCards[0].body[0].text", "p": -1}
    return json.dumps({"type": 1, "target": "update", "arguments": [argument]})


def typed(message_type, **fields):
    """A type 1 frame carrying a message of the given messageType."""
    message = {"messageType": message_type, **fields}
    return json.dumps({"type": 1, "arguments": [{"messages": [message]}]})


def final(*messages):
    """A type 2 frame with the full message list."""
    return json.dumps({"type": 2, "item": {"messages": list(messages)}})
