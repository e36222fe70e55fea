"""Agent definitions: the ``agent.md`` frontmatter schema and its parser.

An agent file looks like::

    ---
    name: Writer
    model: llama3.2
    read: ["notes/"]
    write: ["notes/drafts/*.md"]
    ---
    You are {{agent_name}}, a helpful writing assistant.

The YAML block becomes an :class:`AgentConfig`; the markdown body is the raw
prompt template resolved by :mod:`vault_agents.template_engine`.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from .exceptions import ConfigurationError

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)

AgentType = Literal["conversational", "task", "scheduled"]


class AgentConfig(BaseModel):
    """Immutable per-session snapshot of one agent's frontmatter."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    description: str = ""
    author: str = ""
    avatar: str = ""
    enabled: bool = True
    type: AgentType = "conversational"

    provider: str = "ollama"
    model: str
    stream: bool = False
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=1)
    top_p: float = Field(default=0.9, ge=0.0, le=1.0)

    sources: tuple[str, ...] = ()
    strategy: str = "inject_all"
    max_context_tokens: int = Field(default=4000, ge=1)

    read: tuple[str, ...] = ()
    write: tuple[str, ...] = ()
    create: tuple[str, ...] = ()
    move: tuple[str, ...] = ()
    delete: tuple[str, ...] = ()
    vault_root_access: bool = False
    confirm_destructive: bool = True
    memory: bool = False

    @field_validator("name", "model", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("String value must not be empty.")
        return normalized

    @field_validator("description", "author", "avatar", "provider", "strategy", mode="before")
    @classmethod
    def _normalize_optional_string(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        return value.strip()

    @field_validator(
        "enabled", "stream", "vault_root_access", "confirm_destructive", "memory",
        mode="before",
    )
    @classmethod
    def _parse_bool(cls, value: Any) -> Any:
        # Frontmatter editors frequently store booleans as strings.
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return value

    @field_validator(
        "sources", "read", "write", "create", "move", "delete", mode="before"
    )
    @classmethod
    def _validate_patterns(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ValueError("Expected a list of glob patterns.")
        patterns: list[str] = []
        for item in value:
            if not isinstance(item, str):
                raise ValueError("Glob patterns must be strings.")
            candidate = item.strip()
            if candidate and candidate not in patterns:
                patterns.append(candidate)
        return tuple(patterns)


@dataclass(frozen=True)
class AgentParseResult:
    config: AgentConfig
    prompt_template: str


@dataclass(frozen=True)
class ParsedAgent:
    """An agent as discovered in the vault."""

    id: str
    folder_path: str
    file_path: str
    config: AgentConfig
    prompt_template: str


def split_frontmatter(raw: str) -> tuple[str, str]:
    """Return ``(yaml_text, body)`` from an agent file's raw content."""
    text = raw.lstrip()
    if not text.startswith("---"):
        raise ConfigurationError("agent.md must start with --- (YAML frontmatter)")
    match = _FRONTMATTER_RE.match(text)
    if match is None:
        raise ConfigurationError("agent.md is missing the closing --- of frontmatter")
    return match.group(1).strip(), text[match.end() :].strip()


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "agent"
        problems.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(problems)


def parse_agent_file(raw: str) -> AgentParseResult:
    """Parse ``agent.md`` content into a validated config and prompt template.

    Raises:
        ConfigurationError: if the frontmatter is missing or malformed, or if
            ``name``/``model`` are absent or empty.
    """
    yaml_text, body = split_frontmatter(raw)
    try:
        data = yaml.safe_load(yaml_text) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML frontmatter: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError("Frontmatter must be a mapping of fields.")

    for required in ("name", "model"):
        value = data.get(required)
        if not isinstance(value, str) or not value.strip():
            raise ConfigurationError(
                f"{required} is required and must be a non-empty string"
            )

    try:
        config = AgentConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(_format_validation_error(exc)) from exc
    return AgentParseResult(config=config, prompt_template=body)
