"""Tests for the terminal renderer and slash commands."""

from __future__ import annotations

import io
from pathlib import Path
import tempfile
import unittest

from rich.console import Console

from fakes import ScriptedProvider, ScriptedRound, make_vault

from vault_agents.agent_registry import AgentRegistry
from vault_agents.chat_manager import ChatManager
from vault_agents.cli import ChatSession, TerminalRenderer
from vault_agents.exceptions import ProviderError
from vault_agents.messages import TokenUsage, ToolCall
from vault_agents.orchestrator import AgentOrchestrator
from vault_agents.tools.registry import ToolRegistry
from vault_agents.usage import TokenTracker

AGENT = (
    "---\nname: Writer\nmodel: llama3.2\nstream: true\nread: [notes/]\n---\n"
    "You are {{agent_name}}.\n"
)


class ChatSessionTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.store = make_vault(
            self.root, {"agents/writer/agent.md": AGENT, "notes/a.md": "alpha"}
        )
        self.registry = AgentRegistry(self.store)
        await self.registry.scan("agents")
        self.output = io.StringIO()
        self.console = Console(file=self.output, force_terminal=False, width=200)
        self.chat = ChatManager(self.store, token_tracker=TokenTracker())
        self.renderer = TerminalRenderer(self.console, self.chat)

    async def asyncTearDown(self) -> None:
        self._tmp.cleanup()

    def _session(self, rounds: list[ScriptedRound]) -> ChatSession:
        orchestrator = AgentOrchestrator(
            self.chat,
            ToolRegistry.build_default(self.store),
            ScriptedProvider(rounds),
            callbacks=self.renderer.callbacks(),
            on_notice=self.renderer.notice,
        )
        return ChatSession(
            self.console,
            self.chat,
            orchestrator,
            self.renderer,
            self.registry,
            self.registry.get_agent("writer"),
        )

    async def test_streamed_turn_with_tool_call_prints_each_part_once(self) -> None:
        call = ToolCall(id="c1", name="read_file", arguments='{"path": "notes/a.md"}')
        session = self._session(
            [
                ScriptedRound(chunks=["Let me lo", "ok."], tool_calls=[call]),
                ScriptedRound(chunks=["It says alpha."], usage=TokenUsage.from_counts(2, 3)),
            ]
        )
        await session.start()

        self.assertTrue(await session.handle_line("what is in a?"))

        text = self.output.getvalue()
        self.assertIn("Chatting with Writer", text)
        self.assertEqual(text.count("Let me look."), 1)
        self.assertEqual(text.count("calling read_file"), 1)
        self.assertIn("read_file ->", text)
        self.assertEqual(text.count("It says alpha."), 1)

        await session.handle_line("/usage")
        self.assertIn("5 tokens used by writer.", self.output.getvalue())

    async def test_failed_turn_prints_notice(self) -> None:
        session = self._session([ScriptedRound(error=ProviderError("offline"))])
        await session.start()
        await session.handle_line("hi")
        self.assertIn("Agent error: offline", self.output.getvalue())

    async def test_reload_and_clear_commands(self) -> None:
        session = self._session([])
        await session.start()
        (self.root / "agents" / "writer" / "agent.md").write_text(
            AGENT.replace("name: Writer", "name: Scribe"), encoding="utf-8"
        )

        self.assertTrue(await session.handle_line("/reload"))
        self.assertEqual(self.chat.get_messages()[0].content, "You are Scribe.")

        self.chat.add_message("user", "hello")
        self.assertTrue(await session.handle_line("/clear"))
        self.assertEqual([m.role for m in self.chat.get_messages()], ["system"])

    async def test_reload_of_deleted_agent_keeps_session(self) -> None:
        session = self._session([])
        await session.start()
        (self.root / "agents" / "writer" / "agent.md").unlink()
        self.assertTrue(await session.handle_line("/reload"))
        self.assertIn("Agent file not found", self.output.getvalue())
        self.assertTrue(self.chat.has_active_session())

    async def test_exit_commands(self) -> None:
        session = self._session([])
        self.assertFalse(await session.handle_line("/exit"))
        self.assertFalse(await session.handle_line("/QUIT"))
        self.assertTrue(await session.handle_line("/help"))


if __name__ == "__main__":
    unittest.main()
