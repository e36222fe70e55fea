"""The abstract model-provider boundary consumed by the orchestrator."""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
import json
import logging
from typing import Any
from uuid import uuid4

import httpx
import ollama

from ..agent_config import AgentConfig
from ..config import Config
from ..exceptions import (
    GenerationCancelledError,
    ModelNotFoundError,
    ProviderConnectionError,
    ProviderError,
    ToolsNotSupportedError,
)
from ..messages import ChatMessage, TokenUsage, ToolCall
from ..tools.base import ToolDefinition

LOGGER = logging.getLogger(__name__)

ChunkCallback = Callable[[str], Awaitable[None]]


@dataclass
class ProviderResponse:
    """Aggregate result of one provider round.

    ``tool_calls`` is only known once the round completes, even when the
    text was streamed.
    """

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: TokenUsage | None = None


class ModelProvider(ABC):
    """Send a conversation to a model and return its reply."""

    @abstractmethod
    async def send(
        self,
        messages: Sequence[ChatMessage],
        config: AgentConfig,
        settings: Config,
        *,
        tools: Sequence[ToolDefinition] | None = None,
        on_chunk: ChunkCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ProviderResponse:  # pragma: no cover - interface only
        """Run one round.

        When ``on_chunk`` is given and the agent streams, text fragments are
        delivered in order before the call returns. Implementations stop
        emitting and raise GenerationCancelledError once ``cancel_event``
        is set.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources held by the provider."""


def raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise GenerationCancelledError("Generation stopped.")


def _find_balanced_json(text: str, start: int) -> str | None:
    """Return the balanced JSON object/array beginning at ``start``."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if escaped:
            escaped = False
            continue
        if char == "\\" and in_string:
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_tool_calls_from_text(
    text: str, tool_names: Sequence[str]
) -> tuple[list[ToolCall], str] | None:
    """Recover tool calls a model printed as JSON instead of structured calls.

    Some models emit ``{"name": "read_file", "arguments": {...}}`` (or a list
    of those) as plain content. Only names in ``tool_names`` are accepted.
    Returns ``(calls, cleaned_text)`` or None when nothing matched.
    """
    if not text or not tool_names:
        return None
    if not any(f'"{name}"' in text for name in tool_names):
        return None

    allowed = set(tool_names)
    batch = uuid4().hex[:8]
    for start, char in enumerate(text):
        if char not in "{[":
            continue
        candidate = _find_balanced_json(text, start)
        if candidate is None:
            continue
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        items = parsed if isinstance(parsed, list) else [parsed]
        calls: list[ToolCall] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            if not isinstance(name, str) or name not in allowed or "arguments" not in item:
                continue
            arguments = item["arguments"]
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments, ensure_ascii=False)
            calls.append(
                ToolCall(
                    id=f"fallback_{batch}_{len(calls)}", name=name, arguments=arguments
                )
            )
        if not calls:
            continue
        cleaned = (text[:start] + text[start + len(candidate) :]).strip()
        LOGGER.info(
            "provider.inline_tool_calls",
            extra={"event": "provider.inline_tool_calls", "count": len(calls)},
        )
        return calls, cleaned
    return None


def _status_code(exc: Exception) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    status = getattr(exc, "status_code", None)
    return status if isinstance(status, int) else None


def map_exception(exc: Exception, *, host: str, model: str) -> ProviderError:
    """Translate transport and SDK failures into the provider error hierarchy."""
    # Subclasses are already classified; a bare ProviderError (HTTP status
    # failure) may still name a missing model or missing tool support.
    if isinstance(exc, ProviderError) and type(exc) is not ProviderError:
        return exc

    lower_message = str(exc).lower()
    if "does not support tools" in lower_message:
        return ToolsNotSupportedError(f"Model {model!r} does not support tools.")

    if isinstance(
        exc,
        (
            httpx.ConnectError,
            httpx.ConnectTimeout,
            httpx.ReadTimeout,
            httpx.NetworkError,
            ConnectionError,
        ),
    ):
        return ProviderConnectionError(f"Unable to connect to model host {host}.")

    status = _status_code(exc)
    if isinstance(exc, ollama.ResponseError) and status == 404:
        return ModelNotFoundError(f"Model {model!r} was not found on {host}.")
    if "model" in lower_message and "not found" in lower_message:
        return ModelNotFoundError(f"Model {model!r} was not found on {host}.")
    if status == 404 and "model" in lower_message:
        return ModelNotFoundError(f"Model {model!r} was not found on {host}.")

    if isinstance(exc, ProviderError):
        return exc
    return ProviderError(f"Request to {host} failed: {exc}")


def tool_names_of(tools: Sequence[ToolDefinition] | None) -> list[str]:
    return [tool.name for tool in tools or ()]


def tools_payload(tools: Sequence[ToolDefinition] | None) -> list[dict[str, Any]]:
    return [tool.to_api_dict() for tool in tools or ()]
