"""The tool-calling loop that drives one user turn against a model provider."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
import json
import logging

from .agent_config import ParsedAgent
from .chat_manager import ChatManager
from .exceptions import (
    EmptyResponseError,
    GenerationCancelledError,
    ToolLoopExceededError,
    ToolsNotSupportedError,
    TurnInProgressError,
    VaultAgentsError,
)
from .messages import TokenUsage
from .providers.base import ModelProvider, ProviderResponse
from .references import inject_file_references
from .state import TurnGuard, TurnState
from .tools.base import ToolDefinition
from .tools.registry import ToolRegistry

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_ROUNDS = 10


class NoticeKind(str, Enum):
    STOPPED = "stopped"
    NO_TOOLS = "no_tools"
    TOOL_LOOP_EXCEEDED = "tool_loop_exceeded"
    ERROR = "error"


class TurnOutcome(str, Enum):
    SKIPPED = "skipped"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


NoticeCallback = Callable[[NoticeKind, str], None]


async def _noop_render() -> None:
    return None


@dataclass
class RenderCallbacks:
    """UI hooks invoked as the session log changes."""

    on_render_messages: Callable[[], Awaitable[None]] = _noop_render
    on_update_last_message: Callable[[], Awaitable[None]] = _noop_render
    on_show_typing_indicator: Callable[[str | None], None] | None = None
    on_hide_typing_indicator: Callable[[], None] | None = None


def _log_notice(kind: NoticeKind, message: str) -> None:
    LOGGER.info("chat.notice", extra={"event": "chat.notice", "kind": kind.value, "text": message})


class AgentOrchestrator:
    """Run user turns: provider rounds, streamed output and tool execution.

    One turn may be in flight at a time. ``abort_generation`` stops it
    cooperatively; the session log never keeps an empty assistant
    placeholder, whichever way the turn ends.
    """

    def __init__(
        self,
        chat_manager: ChatManager,
        tool_registry: ToolRegistry,
        provider: ModelProvider,
        callbacks: RenderCallbacks | None = None,
        on_notice: NoticeCallback | None = None,
        max_tool_rounds: int | None = DEFAULT_MAX_TOOL_ROUNDS,
    ) -> None:
        self._chat = chat_manager
        self._tools = tool_registry
        self._provider = provider
        self._callbacks = callbacks or RenderCallbacks()
        self._on_notice = on_notice or _log_notice
        self.max_tool_rounds = max_tool_rounds
        self._guard = TurnGuard()
        self._cancel_event: asyncio.Event | None = None
        self._inflight: asyncio.Task[ProviderResponse] | None = None

    @property
    def is_busy(self) -> bool:
        return self._guard.state is not TurnState.IDLE

    def abort_generation(self) -> None:
        """Stop the current turn, cancelling any in-flight provider call."""
        if self._cancel_event is None:
            return
        self._cancel_event.set()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        LOGGER.info("chat.abort.requested", extra={"event": "chat.abort.requested"})

    def _show_typing(self, name: str | None) -> None:
        if self._callbacks.on_show_typing_indicator is not None:
            self._callbacks.on_show_typing_indicator(name)

    def _hide_typing(self) -> None:
        if self._callbacks.on_hide_typing_indicator is not None:
            self._callbacks.on_hide_typing_indicator()

    async def handle_user_message(self, text: str) -> TurnOutcome:
        """Run one complete turn for ``text``.

        Raises:
            TurnInProgressError: if another turn is still running.
        """
        agent = self._chat.get_active_agent()
        if agent is None or not self._chat.has_active_session() or not text.strip():
            return TurnOutcome.SKIPPED
        if not await self._guard.claim():
            raise TurnInProgressError("A reply is already being generated.")

        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event
        try:
            return await self._run_turn(agent, text, cancel_event)
        finally:
            self._cancel_event = None
            self._inflight = None
            await self._guard.release()

    async def _run_turn(
        self, agent: ParsedAgent, text: str, cancel_event: asyncio.Event
    ) -> TurnOutcome:
        content = await inject_file_references(text, agent.config, self._chat.store)
        user_message = self._chat.add_message("user", content)
        await self._callbacks.on_render_messages()

        try:
            usage = await self._tool_loop(agent, cancel_event)
        except asyncio.CancelledError:
            if not cancel_event.is_set():
                await self._cleanup_after_failure()
                raise
            await self._finish_stopped()
            return TurnOutcome.STOPPED
        except GenerationCancelledError:
            await self._finish_stopped()
            return TurnOutcome.STOPPED
        except ToolsNotSupportedError as exc:
            await self._finish_failed(
                NoticeKind.NO_TOOLS,
                "This model does not support tools. Pick a model with tool support "
                "or remove the agent's file permissions.",
                exc,
            )
            return TurnOutcome.FAILED
        except ToolLoopExceededError as exc:
            await self._finish_failed(NoticeKind.TOOL_LOOP_EXCEEDED, str(exc), exc)
            return TurnOutcome.FAILED
        except VaultAgentsError as exc:
            await self._finish_failed(NoticeKind.ERROR, f"Agent error: {exc}", exc)
            return TurnOutcome.FAILED
        except BaseException:
            await self._cleanup_after_failure()
            raise

        visible = self._chat.get_visible_messages()
        await self._chat.log_turn(user_message, visible[-1], usage)
        return TurnOutcome.COMPLETED

    async def _tool_loop(
        self, agent: ParsedAgent, cancel_event: asyncio.Event
    ) -> TokenUsage | None:
        config = agent.config
        tools = self._tools.get_available_tools(config) or None
        tool_rounds = 0
        usage: TokenUsage | None = None

        while True:
            if cancel_event.is_set():
                raise GenerationCancelledError("Generation stopped.")

            response = await self._request_round(agent, tools, cancel_event)
            usage = response.usage

            if not response.tool_calls:
                if not self._chat.get_messages()[-1].content.strip():
                    raise EmptyResponseError("The model returned an empty response.")
                return usage

            if self.max_tool_rounds is not None and tool_rounds >= self.max_tool_rounds:
                # Answer every requested call so the log stays replayable.
                skipped = json.dumps(
                    {"success": False, "error": "Tool round limit reached; not executed."}
                )
                for call in response.tool_calls:
                    self._chat.add_message(
                        "tool", skipped, tool_call_id=call.id, name=call.name
                    )
                raise ToolLoopExceededError(self.max_tool_rounds)
            tool_rounds += 1

            for call in response.tool_calls:
                LOGGER.info(
                    "chat.tool.call",
                    extra={
                        "event": "chat.tool.call",
                        "tool": call.name,
                        "iteration": tool_rounds,
                    },
                )
                result = await self._tools.execute_tool(config, call.name, call.arguments)
                self._chat.add_message(
                    "tool",
                    json.dumps(result, ensure_ascii=False),
                    tool_call_id=call.id,
                    name=call.name,
                )
            await self._callbacks.on_render_messages()

    async def _call_provider(self, coro: Awaitable[ProviderResponse]) -> ProviderResponse:
        self._inflight = asyncio.ensure_future(coro)
        try:
            return await self._inflight
        finally:
            self._inflight = None

    async def _request_round(
        self,
        agent: ParsedAgent,
        tools: Sequence[ToolDefinition] | None,
        cancel_event: asyncio.Event,
    ) -> ProviderResponse:
        config = agent.config
        messages = self._chat.get_messages()
        settings = self._chat.settings

        if not config.stream:
            self._show_typing(config.name)
            try:
                response = await self._call_provider(
                    self._provider.send(
                        messages, config, settings, tools=tools, cancel_event=cancel_event
                    )
                )
            finally:
                self._hide_typing()
            self._chat.add_message(
                "assistant", response.text, tool_calls=response.tool_calls or None
            )
            await self._callbacks.on_render_messages()
            return response

        self._show_typing(config.name)
        self._chat.add_message("assistant", "")
        first_chunk = True

        async def on_chunk(chunk: str) -> None:
            nonlocal first_chunk
            if cancel_event.is_set():
                raise GenerationCancelledError("Generation stopped.")
            self._chat.append_chunk_to_last_message(chunk)
            if first_chunk:
                first_chunk = False
                self._hide_typing()
                await self._callbacks.on_render_messages()
                return
            await self._callbacks.on_update_last_message()

        response = await self._call_provider(
            self._provider.send(
                messages,
                config,
                settings,
                tools=tools,
                on_chunk=on_chunk,
                cancel_event=cancel_event,
            )
        )
        if first_chunk:
            self._hide_typing()
        if response.tool_calls:
            streamed = self._chat.get_messages()[-1].content
            self._chat.attach_tool_calls(
                response.tool_calls,
                content=response.text if response.text != streamed else None,
            )
        return response

    def _rollback_empty_placeholder(self) -> None:
        messages = self._chat.get_messages()
        if not messages:
            return
        last = messages[-1]
        if last.role == "assistant" and not last.content.strip() and not last.tool_calls:
            self._chat.remove_last_message()

    async def _cleanup_after_failure(self) -> None:
        self._hide_typing()
        self._rollback_empty_placeholder()

    async def _finish_stopped(self) -> None:
        await self._cleanup_after_failure()
        LOGGER.info("chat.request.cancelled", extra={"event": "chat.request.cancelled"})
        self._on_notice(NoticeKind.STOPPED, "Generation stopped.")
        await self._callbacks.on_render_messages()

    async def _finish_failed(
        self, kind: NoticeKind, message: str, exc: BaseException
    ) -> None:
        await self._cleanup_after_failure()
        LOGGER.warning(
            "chat.request.failed",
            extra={
                "event": "chat.request.failed",
                "notice": kind.value,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        self._on_notice(kind, message)
        await self._callbacks.on_render_messages()

