"""Provider adapter for a local Ollama server via the ``ollama`` AsyncClient."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import json
import logging
from typing import Any
from uuid import uuid4

from ollama import AsyncClient

from ..agent_config import AgentConfig
from ..config import Config
from ..exceptions import GenerationCancelledError
from ..messages import ChatMessage, TokenUsage, ToolCall
from ..tools.base import ToolDefinition
from .base import (
    ChunkCallback,
    ModelProvider,
    ProviderResponse,
    extract_tool_calls_from_text,
    map_exception,
    raise_if_cancelled,
    tool_names_of,
    tools_payload,
)

LOGGER = logging.getLogger(__name__)


def _extract_from_chunk(chunk: Any, field: str) -> Any:
    """Read ``message.<field>`` from an SDK response object or plain dict."""
    message_obj = getattr(chunk, "message", None)
    if message_obj is not None and not isinstance(chunk, dict):
        value = getattr(message_obj, field, None)
        if value is not None:
            return value

    if hasattr(chunk, "model_dump"):
        chunk = chunk.model_dump()

    if isinstance(chunk, dict):
        message = chunk.get("message")
        if isinstance(message, dict):
            return message.get(field)
    return None


def _extract_top_level(chunk: Any, field: str) -> Any:
    if isinstance(chunk, dict):
        return chunk.get(field)
    return getattr(chunk, field, None)


def _to_ollama_message(message: ChatMessage) -> dict[str, Any]:
    payload: dict[str, Any] = {"role": message.role, "content": message.content}
    if message.tool_calls:
        calls = []
        for call in message.tool_calls:
            try:
                arguments = json.loads(call.arguments or "{}")
            except json.JSONDecodeError:
                arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}
            calls.append({"function": {"name": call.name, "arguments": arguments}})
        payload["tool_calls"] = calls
    if message.role == "tool" and message.name:
        payload["tool_name"] = message.name
    return payload


class OllamaProvider(ModelProvider):
    """Chat with Ollama's native ``/api/chat`` endpoint."""

    def __init__(self, client: Any | None = None) -> None:
        self._client = client
        self._client_host: str | None = None

    def _get_client(self, settings: Config) -> Any:
        host = settings.ollama.host
        if self._client is None or (
            self._client_host is not None and self._client_host != host
        ):
            self._client = AsyncClient(host=host, timeout=settings.ollama.timeout)
            self._client_host = host
        return self._client

    async def aclose(self) -> None:
        client, self._client = self._client, None
        self._client_host = None
        if client is not None:
            await client.close()

    async def send(
        self,
        messages: Sequence[ChatMessage],
        config: AgentConfig,
        settings: Config,
        *,
        tools: Sequence[ToolDefinition] | None = None,
        on_chunk: ChunkCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ProviderResponse:
        client = self._get_client(settings)
        streaming = config.stream and on_chunk is not None
        kwargs: dict[str, Any] = {
            "model": config.model,
            "messages": [_to_ollama_message(message) for message in messages],
            "stream": streaming,
            "options": {
                "temperature": config.temperature,
                "top_p": config.top_p,
                "num_predict": config.max_tokens,
            },
        }
        if tools:
            kwargs["tools"] = tools_payload(tools)

        LOGGER.info(
            "provider.ollama.request",
            extra={
                "event": "provider.ollama.request",
                "model": config.model,
                "stream": streaming,
                "tools": len(tools or ()),
            },
        )

        raise_if_cancelled(cancel_event)
        text = ""
        raw_calls: list[Any] = []
        usage: TokenUsage | None = None
        try:
            if streaming:
                stream = await client.chat(**kwargs)
                async for chunk in stream:
                    raise_if_cancelled(cancel_event)
                    content = _extract_from_chunk(chunk, "content")
                    if isinstance(content, str) and content:
                        text += content
                        await on_chunk(content)  # type: ignore[misc]
                    raw_calls.extend(_extract_from_chunk(chunk, "tool_calls") or [])
                    if _extract_top_level(chunk, "done"):
                        usage = self._usage_from(chunk)
            else:
                response = await client.chat(**kwargs)
                raise_if_cancelled(cancel_event)
                content = _extract_from_chunk(response, "content")
                text = content if isinstance(content, str) else ""
                raw_calls = list(_extract_from_chunk(response, "tool_calls") or [])
                usage = self._usage_from(response)
        except (asyncio.CancelledError, GenerationCancelledError):
            LOGGER.info(
                "provider.ollama.cancelled",
                extra={"event": "provider.ollama.cancelled", "model": config.model},
            )
            raise
        except Exception as exc:  # noqa: BLE001 - external API can fail in many ways.
            raise map_exception(
                exc, host=settings.ollama.host, model=config.model
            ) from exc

        batch = uuid4().hex[:8]
        tool_calls = [
            call
            for index, raw in enumerate(raw_calls)
            if (call := ToolCall.from_api(raw, fallback_id=f"call_{batch}_{index}"))
            is not None
        ]
        if not tool_calls and tools:
            extracted = extract_tool_calls_from_text(text, tool_names_of(tools))
            if extracted is not None:
                tool_calls, text = extracted

        return ProviderResponse(text=text, tool_calls=tool_calls, usage=usage)

    @staticmethod
    def _usage_from(response: Any) -> TokenUsage | None:
        prompt = _extract_top_level(response, "prompt_eval_count")
        completion = _extract_top_level(response, "eval_count")
        if prompt is None and completion is None:
            return None
        return TokenUsage.from_counts(prompt, completion)
