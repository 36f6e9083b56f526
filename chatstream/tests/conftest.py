"""Pytest fixtures and config."""

import pytest

from chatstream.tests.builders import count_words


@pytest.fixture(autouse=True)
def env_cleanup(monkeypatch):
    """Avoid picking up real settings from the environment in tests."""
    for name in (
        "CHAT_REVOKE_REPLY_TEXT",
        "CHAT_REVOKE_REPLY_COUNT",
        "CHATSTREAM_ENV_PREFIX",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/1")
    yield


@pytest.fixture
def tokenizer():
    """Stand-in for tiktoken: one token per whitespace-separated word."""
    return count_words