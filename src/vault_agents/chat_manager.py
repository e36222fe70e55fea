"""Session state for one active agent conversation.

Lifecycle:
  1. ``start_session(agent)`` resolves the prompt template into the system message
  2. ``add_message`` / ``append_chunk_to_last_message`` grow the log
  3. ``get_messages()`` returns the full conversation for provider calls
  4. ``clear_session()`` resets

ChatManager never calls a model provider; it only owns state.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import Protocol

from .agent_config import ParsedAgent
from .config import Config
from .file_store import FileStore
from .messages import ChatMessage, TokenUsage, ToolCall
from .template_engine import TemplateContext, resolve_template
from .usage import TokenTracker

LOGGER = logging.getLogger(__name__)

APPENDABLE_ROLES = frozenset({"user", "assistant", "tool"})


class TurnLogger(Protocol):
    """Receives one record per completed turn."""

    async def log_turn(
        self,
        agent: ParsedAgent,
        user_message: ChatMessage,
        assistant_message: ChatMessage,
        usage: TokenUsage | None,
        is_new_session: bool,
    ) -> None: ...


class LoggingTurnLogger:
    """Emit each completed turn as a structured ``chat.turn`` log event."""

    async def log_turn(
        self,
        agent: ParsedAgent,
        user_message: ChatMessage,
        assistant_message: ChatMessage,
        usage: TokenUsage | None,
        is_new_session: bool,
    ) -> None:
        LOGGER.info(
            "chat.turn",
            extra={
                "event": "chat.turn",
                "agent": agent.id,
                "model": agent.config.model,
                "new_session": is_new_session,
                "user_chars": len(user_message.content),
                "assistant_chars": len(assistant_message.content),
                "usage": usage.to_dict() if usage is not None else None,
            },
        )


class ChatManager:
    """Owns the message log and agent binding of the single active session."""

    def __init__(
        self,
        store: FileStore,
        settings: Config | None = None,
        turn_logger: TurnLogger | None = None,
        token_tracker: TokenTracker | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or Config()
        self.turn_logger: TurnLogger = turn_logger or LoggingTurnLogger()
        self.token_tracker = token_tracker or TokenTracker(enabled=False)
        self._messages: list[ChatMessage] = []
        self._active_agent: ParsedAgent | None = None
        self._is_new_session_log = False

    @property
    def settings(self) -> Config:
        return self._settings

    @property
    def store(self) -> FileStore:
        return self._store

    def update_settings(self, settings: Config) -> None:
        self._settings = settings

    async def _resolve_system_prompt(self, agent: ParsedAgent) -> str:
        return await resolve_template(
            agent.prompt_template,
            TemplateContext(
                agent_config=agent.config,
                store=self._store,
                user_name=self._settings.general.user_name,
            ),
        )

    async def start_session(self, agent: ParsedAgent) -> None:
        """Bind ``agent`` and reset the log to its resolved system message."""
        system_prompt = await self._resolve_system_prompt(agent)
        self._active_agent = agent
        self._is_new_session_log = True
        self._messages = [ChatMessage(role="system", content=system_prompt)]
        LOGGER.info(
            "chat.session.started",
            extra={"event": "chat.session.started", "agent": agent.id},
        )

    def _known_tool_call_ids(self) -> set[str]:
        return {
            call.id
            for message in self._messages
            if message.role == "assistant" and message.tool_calls
            for call in message.tool_calls
        }

    def add_message(
        self,
        role: str,
        content: str,
        *,
        tool_calls: Sequence[ToolCall] | None = None,
        tool_call_id: str | None = None,
        name: str | None = None,
    ) -> ChatMessage:
        """Append a user, assistant or tool message and return it.

        Raises:
            ValueError: for the system role or any unknown role, and for a
                tool message that does not answer an earlier tool call.
        """
        if role not in APPENDABLE_ROLES:
            raise ValueError(f"Cannot append a message with role {role!r}.")
        if role == "tool" and tool_call_id not in self._known_tool_call_ids():
            raise ValueError(
                f"Tool result references unknown tool call id {tool_call_id!r}."
            )
        message = ChatMessage(
            role=role,  # type: ignore[arg-type]
            content=content,
            tool_calls=list(tool_calls) if tool_calls else None,
            tool_call_id=tool_call_id if role == "tool" else None,
            name=name,
        )
        self._messages.append(message)
        return message

    def attach_tool_calls(
        self, tool_calls: Sequence[ToolCall], content: str | None = None
    ) -> None:
        """Record the tool calls of the last assistant message.

        ``content`` replaces the streamed text when the calls were recovered
        from it.
        """
        if not self._messages or self._messages[-1].role != "assistant":
            raise ValueError("Tool calls can only be attached to an assistant message.")
        last = self._messages[-1]
        last.tool_calls = list(tool_calls)
        if content is not None:
            last.content = content

    def remove_last_message(self) -> None:
        """Drop the most recent message, used to roll back an empty placeholder."""
        if self._messages:
            self._messages.pop()

    def append_chunk_to_last_message(self, chunk: str) -> None:
        """Append streamed text to the last message if it is an assistant message."""
        if not self._messages:
            return
        last = self._messages[-1]
        if last.role == "assistant":
            last.content += chunk

    def get_messages(self) -> list[ChatMessage]:
        """Return a copy of the log; the first entry is the system message."""
        return list(self._messages)

    def get_visible_messages(self) -> list[ChatMessage]:
        return [message for message in self._messages if message.role != "system"]

    def get_active_agent(self) -> ParsedAgent | None:
        return self._active_agent

    async def update_active_agent(self, agent: ParsedAgent) -> None:
        """Hot-swap the active agent's config while keeping history.

        Ignored unless ``agent`` has the same id as the active agent. The
        system message is re-resolved in place.
        """
        if self._active_agent is None or self._active_agent.id != agent.id:
            return
        self._active_agent = agent
        system_prompt = await self._resolve_system_prompt(agent)
        if self._messages and self._messages[0].role == "system":
            self._messages[0].content = system_prompt

    def has_active_session(self) -> bool:
        return self._active_agent is not None and len(self._messages) > 0

    def clear_session(self) -> None:
        self._messages = []
        self._active_agent = None
        self._is_new_session_log = False

    async def log_turn(
        self,
        user_message: ChatMessage,
        assistant_message: ChatMessage,
        usage: TokenUsage | None = None,
    ) -> None:
        """Forward one completed turn to the turn logger and usage tracker."""
        agent = self._active_agent
        if agent is None:
            return
        is_new = self._is_new_session_log
        self._is_new_session_log = False

        await self.turn_logger.log_turn(
            agent, user_message, assistant_message, usage, is_new
        )
        if usage is not None:
            self.token_tracker.update(agent.id, usage)
