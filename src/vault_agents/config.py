"""Configuration loading and validation for the vault agents runtime."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
import tomllib
from typing import Any, Literal
from urllib.parse import urlparse

from platformdirs import user_config_path, user_state_path
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigValidationError

LOGGER = logging.getLogger(__name__)

APP_NAME = "vault-agents"
CONFIG_DIR = user_config_path(APP_NAME)
CONFIG_PATH = CONFIG_DIR / "config.toml"
STATE_DIR = user_state_path(APP_NAME)

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _non_empty_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class GeneralConfig(BaseModel):
    """User identity and where agents live in the vault."""

    user_name: str = ""
    agents_folder: str = "agents"
    default_provider: Literal["ollama", "openrouter"] = "ollama"
    default_model: str = "llama3.2"

    @field_validator("user_name", mode="before")
    @classmethod
    def _normalize_user_name(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("user_name must be a string.")
        return value.strip()

    @field_validator("agents_folder", mode="before")
    @classmethod
    def _validate_agents_folder(cls, value: Any) -> str:
        return _non_empty_string(value).replace("\\", "/").strip("/") or "agents"

    @field_validator("default_model", mode="before")
    @classmethod
    def _validate_model(cls, value: Any) -> str:
        return _non_empty_string(value)


class OllamaConfig(BaseModel):
    """Ollama endpoint settings."""

    host: str = "http://localhost:11434"
    timeout: int = Field(default=120, ge=1, le=3600)

    @field_validator("host", mode="before")
    @classmethod
    def _validate_host(cls, value: Any) -> str:
        host = _non_empty_string(value).rstrip("/")
        parsed = urlparse(host)
        if parsed.scheme.lower() not in {"http", "https"}:
            raise ValueError("ollama.host must use http or https scheme.")
        if not parsed.hostname:
            raise ValueError("ollama.host must include a hostname.")
        return host


class OpenRouterConfig(BaseModel):
    """OpenAI-compatible endpoint settings (OpenRouter by default)."""

    api_key: str = ""
    base_url: str = "https://openrouter.ai/api/v1"
    timeout: int = Field(default=120, ge=1, le=3600)

    @field_validator("api_key", mode="before")
    @classmethod
    def _normalize_api_key(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("api_key must be a string.")
        return value.strip()

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: Any) -> str:
        return _non_empty_string(value).rstrip("/")


class ChatConfig(BaseModel):
    """Tool-loop behaviour.

    ``max_tool_rounds`` caps consecutive rounds in which the model requests
    tools; ``0`` disables the ceiling.
    """

    max_tool_rounds: int = Field(default=10, ge=0, le=1000)


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = str(STATE_DIR / "app.log")

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("log_file_path must be a string.")
        return _non_empty_string(value)


class UsageConfig(BaseModel):
    """Per-agent token usage tracking."""

    enabled: bool = True
    path: str = str(STATE_DIR / "usage.json")

    @field_validator("path", mode="before")
    @classmethod
    def _validate_path(cls, value: Any) -> str:
        return _non_empty_string(value)


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    general: GeneralConfig = GeneralConfig()
    ollama: OllamaConfig = OllamaConfig()
    openrouter: OpenRouterConfig = OpenRouterConfig()
    chat: ChatConfig = ChatConfig()
    logging: LoggingConfig = LoggingConfig()
    usage: UsageConfig = UsageConfig()

    @property
    def max_tool_rounds(self) -> int | None:
        return self.chat.max_tool_rounds or None


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump(by_alias=True)


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _validate_config(raw: dict[str, Any]) -> Config:
    """Validate merged config, resetting only the sections that fail."""
    try:
        return Config.model_validate(raw)
    except ValidationError as exc:
        invalid = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        LOGGER.warning(
            "Configuration validation failed, using defaults for %s: %s",
            ", ".join(sorted(invalid)) or "all sections",
            exc,
        )
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc

    repaired = {key: value for key, value in raw.items() if key not in invalid}
    try:
        return Config.model_validate(repaired)
    except ValidationError:
        return Config()


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (tomllib.TOMLDecodeError, OSError) as exc:
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    return _validate_config(_deep_merge(DEFAULT_CONFIG, raw_data))
