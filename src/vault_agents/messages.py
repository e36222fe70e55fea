"""Conversation value types shared by the session, providers and loggers."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import time
from typing import Any, Literal

Role = Literal["system", "user", "assistant", "tool"]
ROLES: frozenset[str] = frozenset({"system", "user", "assistant", "tool"})


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model in an assistant turn.

    ``arguments`` is kept as the raw JSON string the model produced; it is
    only parsed and validated at the tool registry boundary.
    """

    id: str
    name: str
    arguments: str = "{}"

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_api(cls, payload: Any, fallback_id: str) -> ToolCall | None:
        """Build a call from an OpenAI/Ollama-style dict or SDK object."""
        if isinstance(payload, dict):
            fn = payload.get("function")
            call_id = payload.get("id")
        else:
            fn = getattr(payload, "function", None)
            call_id = getattr(payload, "id", None)

        if isinstance(fn, dict):
            name = fn.get("name")
            arguments = fn.get("arguments")
        elif fn is not None:
            name = getattr(fn, "name", None)
            arguments = getattr(fn, "arguments", None)
        else:
            return None

        if not isinstance(name, str) or not name:
            return None
        if arguments is None:
            arguments = "{}"
        elif not isinstance(arguments, str):
            # Ollama returns arguments already decoded.
            if hasattr(arguments, "items"):
                arguments = dict(arguments)
            arguments = json.dumps(arguments, ensure_ascii=False)
        return cls(
            id=call_id if isinstance(call_id, str) and call_id else fallback_id,
            name=name,
            arguments=arguments,
        )


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(cls, prompt: int | None, completion: int | None) -> TokenUsage:
        p = int(prompt or 0)
        c = int(completion or 0)
        return cls(prompt_tokens=p, completion_tokens=c, total_tokens=p + c)

    @classmethod
    def from_dict(cls, payload: Any) -> TokenUsage | None:
        if not isinstance(payload, dict):
            return None
        prompt = payload.get("prompt_tokens", payload.get("promptTokens", 0)) or 0
        completion = (
            payload.get("completion_tokens", payload.get("completionTokens", 0)) or 0
        )
        total = payload.get("total_tokens", payload.get("totalTokens"))
        if total is None:
            total = int(prompt) + int(completion)
        return cls(
            prompt_tokens=int(prompt),
            completion_tokens=int(completion),
            total_tokens=int(total),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class ChatMessage:
    """One entry of the session log."""

    role: Role
    content: str = ""
    timestamp: float = field(default_factory=time.time)
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    def to_api_dict(self) -> dict[str, Any]:
        """Return the provider wire shape (OpenAI-compatible)."""
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_api_dict() for call in self.tool_calls]
        if self.tool_call_id:
            payload["tool_call_id"] = self.tool_call_id
        if self.name:
            payload["name"] = self.name
        return payload

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable snapshot for persistence and replay."""
        payload = self.to_api_dict()
        payload["timestamp"] = self.timestamp
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ChatMessage:
        role = str(payload.get("role", "")).strip().lower()
        if role not in ROLES:
            raise ValueError(f"Unknown message role {role!r}.")
        raw_calls = payload.get("tool_calls") or []
        calls = [
            call
            for index, raw in enumerate(raw_calls)
            if (call := ToolCall.from_api(raw, fallback_id=f"call_{index}")) is not None
        ]
        timestamp = payload.get("timestamp")
        return cls(
            role=role,  # type: ignore[arg-type]
            content=str(payload.get("content") or ""),
            timestamp=float(timestamp) if timestamp is not None else time.time(),
            tool_calls=calls or None,
            tool_call_id=payload.get("tool_call_id"),
            name=payload.get("name"),
        )
