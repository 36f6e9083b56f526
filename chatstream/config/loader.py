"""Load configuration from YAML and environment variables. No hardcoded secrets."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Default config lives next to this module
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "default.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


class ChatSettings(BaseSettings):
    """Interpreter policy: revoke-retry budget and tokenizer model."""

    model_config = SettingsConfigDict(env_prefix="CHAT_", extra="ignore")
    revoke_reply_text: str = ""
    revoke_reply_count: int = Field(default=0, ge=0)
    tokenizer_model: str = "gpt-4"
    session_id: str = "default"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")
    url: str = "redis://localhost:6379/0"
    enabled: bool = False


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")
    level: str = "INFO"
    json_format: bool = True


class Config(BaseSettings):
    """Application config: YAML + env. Secrets from env only."""

    model_config = SettingsConfigDict(env_nested_delimiter="__", extra="ignore")

    chat: ChatSettings = Field(default_factory=ChatSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> "Config":
        path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
        yaml_data = _load_yaml(path)
        env_prefix = os.getenv("CHATSTREAM_ENV_PREFIX", "")
        if env_prefix:
            yaml_data = _deep_merge(yaml_data, _load_yaml(Path(f"config/{env_prefix}.yaml")))
        redis_url = os.getenv("REDIS_URL")
        if redis_url:
            yaml_data.setdefault("redis", {})["url"] = redis_url
        revoke_text = os.getenv("CHAT_REVOKE_REPLY_TEXT")
        if revoke_text is not None:
            yaml_data.setdefault("chat", {})["revoke_reply_text"] = revoke_text
        revoke_count = os.getenv("CHAT_REVOKE_REPLY_COUNT")
        if revoke_count:
            yaml_data.setdefault("chat", {})["revoke_reply_count"] = int(revoke_count)
        level = os.getenv("LOG_LEVEL")
        if level:
            yaml_data.setdefault("logging", {})["level"] = level
        return cls(**yaml_data)


def get_config(config_path: str | Path | None = None) -> Config:
    return Config.load(config_path)
