"""Tests for config loading."""

from __future__ import annotations

from chatstream.config.loader import Config, _deep_merge, _load_yaml, get_config


def test_load_yaml_missing(tmp_path):
    assert _load_yaml(tmp_path / "nonexistent.yaml") == {}


def test_load_yaml_exists(tmp_path):
    path = tmp_path / "test.yaml"
    path.write_text("chat:\n  revoke_reply_count: 3\n")
    data = _load_yaml(path)
    assert data["chat"]["revoke_reply_count"] == 3


def test_config_defaults():
    config = Config.load()
    assert config.chat.revoke_reply_text == ""
    assert config.chat.revoke_reply_count == 0
    assert config.chat.tokenizer_model == "gpt-4"
    assert config.redis.enabled is False


def test_config_load_from_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "chat:\n  revoke_reply_text: Continue\n  revoke_reply_count: 2\n"
        "logging:\n  level: DEBUG\n  json_format: false\n"
    )
    config = Config.load(config_path=path)
    assert config.chat.revoke_reply_text == "Continue"
    assert config.chat.revoke_reply_count == 2
    assert config.logging.level == "DEBUG"
    assert config.logging.json_format is False


def test_config_env_override(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "redis://test:6379/5")
    monkeypatch.setenv("CHAT_REVOKE_REPLY_TEXT", "Please continue")
    monkeypatch.setenv("CHAT_REVOKE_REPLY_COUNT", "4")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    config = Config.load()
    assert config.redis.url == "redis://test:6379/5"
    assert config.chat.revoke_reply_text == "Please continue"
    assert config.chat.revoke_reply_count == 4
    assert config.logging.level == "WARNING"


def test_deep_merge():
    base = {"a": 1, "b": {"x": 10, "y": 20}}
    override = {"b": {"y": 22, "z": 30}, "c": 3}
    out = _deep_merge(base, override)
    assert out == {"a": 1, "b": {"x": 10, "y": 22, "z": 30}, "c": 3}
    assert base["b"] == {"x": 10, "y": 20}


def test_config_load_env_prefix_overlay(monkeypatch, tmp_path):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "staging.yaml").write_text("chat:\n  session_id: staging\n")
    monkeypatch.setenv("CHATSTREAM_ENV_PREFIX", "staging")
    monkeypatch.chdir(tmp_path)
    config = Config.load()
    assert config.chat.session_id == "staging"
    assert config.chat.tokenizer_model == "gpt-4"


def test_config_load_env_prefix_missing_file(monkeypatch, tmp_path):
    monkeypatch.setenv("CHATSTREAM_ENV_PREFIX", "staging")
    monkeypatch.chdir(tmp_path)
    config = Config.load()
    assert config.chat.session_id == "default"


def test_get_config(tmp_path):
    path = tmp_path / "c.yaml"
    path.write_text("chat:\n  session_id: from-file\n")
    config = get_config(config_path=str(path))
    assert config.chat.session_id == "from-file"
    assert config.redis.url == "redis://localhost:6379/1"
