"""Provider adapter for OpenAI-compatible ``/chat/completions`` endpoints."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import json
import logging
from typing import Any

import httpx

from ..agent_config import AgentConfig
from ..config import Config
from ..exceptions import GenerationCancelledError, ProviderError
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

SSE_PREFIX = "data:"
SSE_DONE = "[DONE]"


class _StreamAccumulator:
    """Fold SSE deltas into text, indexed tool calls and usage."""

    def __init__(self, on_chunk: ChunkCallback, cancel_event: asyncio.Event | None) -> None:
        self.on_chunk = on_chunk
        self.cancel_event = cancel_event
        self.text = ""
        self.usage: TokenUsage | None = None
        self._calls: dict[int, dict[str, str]] = {}

    async def feed(self, data: dict[str, Any]) -> None:
        choices = data.get("choices") or []
        delta = (choices[0].get("delta") or {}) if choices else {}

        content = delta.get("content")
        if isinstance(content, str) and content:
            raise_if_cancelled(self.cancel_event)
            self.text += content
            await self.on_chunk(content)

        for raw in delta.get("tool_calls") or []:
            index = raw.get("index", len(self._calls))
            fn = raw.get("function") or {}
            entry = self._calls.setdefault(
                index,
                {"id": raw.get("id") or f"call_{index}", "name": "", "arguments": ""},
            )
            if fn.get("name"):
                entry["name"] = fn["name"]
            if fn.get("arguments"):
                entry["arguments"] += fn["arguments"]

        if data.get("usage"):
            self.usage = TokenUsage.from_dict(data["usage"])

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [
            ToolCall(id=entry["id"], name=entry["name"], arguments=entry["arguments"] or "{}")
            for _, entry in sorted(self._calls.items())
            if entry["name"]
        ]


class OpenAICompatibleProvider(ModelProvider):
    """Chat with OpenRouter or any server speaking the OpenAI chat API."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    def _get_client(self, settings: Config) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.openrouter.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _headers(settings: Config) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if settings.openrouter.api_key:
            headers["Authorization"] = f"Bearer {settings.openrouter.api_key}"
        return headers

    @staticmethod
    def _payload(
        messages: Sequence[ChatMessage],
        config: AgentConfig,
        tools: Sequence[ToolDefinition] | None,
        streaming: bool,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": config.model,
            "messages": [message.to_api_dict() for message in messages],
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "top_p": config.top_p,
            "stream": streaming,
        }
        if tools:
            payload["tools"] = tools_payload(tools)
            payload["tool_choice"] = "auto"
        if streaming:
            payload["stream_options"] = {"include_usage": True}
        return payload

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
        url = f"{settings.openrouter.base_url}/chat/completions"
        streaming = config.stream and on_chunk is not None
        payload = self._payload(messages, config, tools, streaming)

        LOGGER.info(
            "provider.openai.request",
            extra={
                "event": "provider.openai.request",
                "model": config.model,
                "stream": streaming,
                "tools": len(tools or ()),
            },
        )

        raise_if_cancelled(cancel_event)
        try:
            if streaming:
                response = await self._stream(
                    client, url, payload, settings, on_chunk, cancel_event  # type: ignore[arg-type]
                )
            else:
                response = await self._complete(client, url, payload, settings)
        except (asyncio.CancelledError, GenerationCancelledError):
            LOGGER.info(
                "provider.openai.cancelled",
                extra={"event": "provider.openai.cancelled", "model": config.model},
            )
            raise
        except Exception as exc:  # noqa: BLE001 - external API can fail in many ways.
            raise map_exception(exc, host=url, model=config.model) from exc

        if not response.tool_calls and tools:
            extracted = extract_tool_calls_from_text(response.text, tool_names_of(tools))
            if extracted is not None:
                response.tool_calls, response.text = extracted
        return response

    @staticmethod
    def _raise_for_error(status: int, body: str) -> None:
        if status >= 400:
            raise ProviderError(f"API Error {status}: {body}")

    async def _complete(
        self,
        client: httpx.AsyncClient,
        url: str,
        payload: dict[str, Any],
        settings: Config,
    ) -> ProviderResponse:
        http_response = await client.post(url, json=payload, headers=self._headers(settings))
        self._raise_for_error(http_response.status_code, http_response.text)

        data = http_response.json()
        choices = data.get("choices") or []
        message = (choices[0].get("message") or {}) if choices else {}
        text = message.get("content") or ""
        tool_calls = [
            call
            for index, raw in enumerate(message.get("tool_calls") or [])
            if (call := ToolCall.from_api(raw, fallback_id=f"call_{index}")) is not None
        ]
        return ProviderResponse(
            text=text, tool_calls=tool_calls, usage=TokenUsage.from_dict(data.get("usage"))
        )

    async def _stream(
        self,
        client: httpx.AsyncClient,
        url: str,
        payload: dict[str, Any],
        settings: Config,
        on_chunk: ChunkCallback,
        cancel_event: asyncio.Event | None,
    ) -> ProviderResponse:
        accumulator = _StreamAccumulator(on_chunk, cancel_event)
        async with client.stream(
            "POST", url, json=payload, headers=self._headers(settings)
        ) as http_response:
            if http_response.status_code >= 400:
                body = (await http_response.aread()).decode("utf-8", errors="replace")
                self._raise_for_error(http_response.status_code, body)

            async for line in http_response.aiter_lines():
                raise_if_cancelled(cancel_event)
                stripped = line.strip()
                if not stripped.startswith(SSE_PREFIX):
                    continue
                data_str = stripped[len(SSE_PREFIX) :].strip()
                if data_str == SSE_DONE:
                    break
                try:
                    data = json.loads(data_str)
                except json.JSONDecodeError:
                    LOGGER.debug(
                        "provider.openai.bad_sse_line",
                        extra={"event": "provider.openai.bad_sse_line"},
                    )
                    continue
                if isinstance(data, dict):
                    await accumulator.feed(data)

        return ProviderResponse(
            text=accumulator.text,
            tool_calls=accumulator.tool_calls,
            usage=accumulator.usage,
        )
