"""Terminal front end: rich rendering of the orchestrator's callbacks."""

from __future__ import annotations

import asyncio
import signal

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.status import Status
from rich.table import Table

from .agent_config import ParsedAgent
from .agent_registry import AgentRegistry
from .chat_manager import ChatManager
from .exceptions import ConfigurationError, TurnInProgressError
from .messages import ChatMessage
from .orchestrator import AgentOrchestrator, NoticeKind, RenderCallbacks
from .permission_guard import FileOperationType

NOTICE_STYLES = {
    NoticeKind.STOPPED: "yellow",
    NoticeKind.NO_TOOLS: "bold red",
    NoticeKind.TOOL_LOOP_EXCEEDED: "red",
    NoticeKind.ERROR: "red",
}

HELP_TEXT = "/clear new session  /reload re-read agent.md  /usage tokens  /exit quit"


class TerminalRenderer:
    """Print new session messages incrementally as callbacks arrive."""

    def __init__(self, console: Console, chat: ChatManager) -> None:
        self.console = console
        self.chat = chat
        self._shown = 0
        self._printed_chars = 0
        self._calls_printed = False
        self._status: Status | None = None

    def reset(self) -> None:
        self._shown = 0
        self._printed_chars = 0
        self._calls_printed = False

    def _print_header(self, message: ChatMessage) -> None:
        if message.role == "assistant":
            agent = self.chat.get_active_agent()
            name = agent.config.name if agent is not None else "assistant"
            self.console.print(f"\n[bold cyan]{escape(name)}>[/] ", end="")
        elif message.role == "tool":
            self.console.print(f"\n[dim]  {escape(message.name or 'tool')} -> [/]", end="")

    def _flush(self, message: ChatMessage) -> None:
        if message.role == "user":
            return
        pending = message.content[self._printed_chars :]
        if pending:
            style = "dim" if message.role == "tool" else None
            self.console.print(pending, end="", style=style, markup=False, highlight=False)
            self._printed_chars = len(message.content)
        if message.role == "assistant" and message.tool_calls and not self._calls_printed:
            # Streamed rounds only learn their tool calls after the last chunk.
            self._calls_printed = True
            for call in message.tool_calls:
                self.console.print(
                    f"\n[dim]  calling {escape(call.name)}({escape(call.arguments)})[/]",
                    end="",
                )

    async def render_messages(self) -> None:
        visible = self.chat.get_visible_messages()
        if self._shown > len(visible):
            # A rolled-back placeholder; everything still visible was printed.
            self._shown = len(visible)
            self._printed_chars = len(visible[-1].content) if visible else 0
            self._calls_printed = True
        elif self._shown:
            self._flush(visible[self._shown - 1])
        for message in visible[self._shown :]:
            self._shown += 1
            self._printed_chars = 0
            self._calls_printed = False
            self._print_header(message)
            self._flush(message)

    async def update_last_message(self) -> None:
        visible = self.chat.get_visible_messages()
        if visible and self._shown == len(visible):
            self._flush(visible[-1])

    def show_typing(self, name: str | None) -> None:
        self.hide_typing()
        self._status = self.console.status(f"{name or 'Agent'} is thinking...")
        self._status.start()

    def hide_typing(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def notice(self, kind: NoticeKind, message: str) -> None:
        self.console.print(f"\n[{NOTICE_STYLES[kind]}]{escape(message)}[/]")

    def callbacks(self) -> RenderCallbacks:
        return RenderCallbacks(
            on_render_messages=self.render_messages,
            on_update_last_message=self.update_last_message,
            on_show_typing_indicator=self.show_typing,
            on_hide_typing_indicator=self.hide_typing,
        )


def print_agents(console: Console, registry: AgentRegistry) -> None:
    table = Table(title="Agents")
    table.add_column("id")
    table.add_column("name")
    table.add_column("model")
    table.add_column("enabled")
    for agent in registry.get_all_agents():
        table.add_row(
            agent.id,
            agent.config.name,
            f"{agent.config.provider}/{agent.config.model}",
            "yes" if agent.config.enabled else "no",
        )
    console.print(table)


def make_confirm_handler(console: Console):
    async def confirm(agent_name: str, operation: FileOperationType, target: str) -> bool:
        question = f"{escape(agent_name)} wants to [bold]{operation.value}[/] {escape(target)}. Allow?"
        return await asyncio.to_thread(Confirm.ask, question, console=console, default=False)

    return confirm


async def run_turn(orchestrator: AgentOrchestrator, text: str) -> None:
    """Run one turn with Ctrl-C bound to ``abort_generation``."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.abort_generation)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False
    try:
        await orchestrator.handle_user_message(text)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


class ChatSession:
    """Read-eval loop around one agent."""

    def __init__(
        self,
        console: Console,
        chat: ChatManager,
        orchestrator: AgentOrchestrator,
        renderer: TerminalRenderer,
        registry: AgentRegistry,
        agent: ParsedAgent,
    ) -> None:
        self.console = console
        self.chat = chat
        self.orchestrator = orchestrator
        self.renderer = renderer
        self.registry = registry
        self.agent = agent

    async def start(self) -> None:
        await self.chat.start_session(self.agent)
        self.renderer.reset()
        self.console.print(
            f"[bold]Chatting with {escape(self.agent.config.name)}[/] "
            f"[dim]({escape(self.agent.config.model)}). {HELP_TEXT}[/]"
        )

    async def handle_command(self, command: str) -> bool:
        """Run a slash command; return False when the loop should end."""
        name = command.strip().lower()
        if name in ("/exit", "/quit"):
            return False
        if name == "/clear":
            await self.start()
        elif name == "/reload":
            agents_folder = self.chat.settings.general.agents_folder
            try:
                self.agent = await self.registry.reload_agent(self.agent.id, agents_folder)
            except ConfigurationError as exc:
                self.console.print(f"[red]{escape(str(exc))}[/]")
                return True
            await self.chat.update_active_agent(self.agent)
            self.console.print("[dim]Agent reloaded.[/]")
        elif name == "/usage":
            total = self.chat.token_tracker.get_total_tokens(self.agent.id)
            self.console.print(f"[dim]{total} tokens used by {escape(self.agent.id)}.[/]")
        else:
            self.console.print(f"[dim]{HELP_TEXT}[/]")
        return True

    async def handle_line(self, text: str) -> bool:
        if text.strip().startswith("/"):
            return await self.handle_command(text)
        try:
            await run_turn(self.orchestrator, text)
        except TurnInProgressError as exc:
            self.console.print(f"[yellow]{escape(str(exc))}[/]")
        self.console.print()
        return True
