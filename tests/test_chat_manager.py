"""Tests for session state handling."""

from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from fakes import make_agent, make_vault

from vault_agents.chat_manager import ChatManager
from vault_agents.config import Config
from vault_agents.messages import ChatMessage, TokenUsage, ToolCall
from vault_agents.usage import TokenTracker


class _RecordingTurnLogger:
    def __init__(self) -> None:
        self.records: list[tuple[str, str, str, TokenUsage | None, bool]] = []

    async def log_turn(self, agent, user_message, assistant_message, usage, is_new_session):
        self.records.append(
            (agent.id, user_message.content, assistant_message.content, usage, is_new_session)
        )


class ChatManagerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        store = make_vault(self.root, {"notes/a.md": "alpha"})
        settings = Config.model_validate({"general": {"user_name": "Sam"}})
        self.turns = _RecordingTurnLogger()
        self.tracker = TokenTracker(enabled=True)
        self.chat = ChatManager(
            store, settings=settings, turn_logger=self.turns, token_tracker=self.tracker
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_start_session_resolves_system_prompt(self) -> None:
        agent = make_agent(prompt="I am {{agent_name}} helping {{user_name}}.")
        await self.chat.start_session(agent)
        messages = self.chat.get_messages()
        self.assertEqual(len(messages), 1)
        self.assertEqual(messages[0].role, "system")
        self.assertEqual(messages[0].content, "I am Writer helping Sam.")
        self.assertIs(self.chat.get_active_agent(), agent)
        self.assertTrue(self.chat.has_active_session())
        self.assertEqual(self.chat.get_visible_messages(), [])

    async def test_append_chunk_on_empty_log_is_a_no_op(self) -> None:
        self.chat.append_chunk_to_last_message("late")
        self.assertEqual(self.chat.get_messages(), [])
        self.assertFalse(self.chat.has_active_session())

    async def test_start_session_replaces_previous_log(self) -> None:
        await self.chat.start_session(make_agent())
        self.chat.add_message("user", "hi")
        await self.chat.start_session(make_agent(agent_id="other"))
        self.assertEqual([m.role for m in self.chat.get_messages()], ["system"])

    async def test_system_role_cannot_be_appended(self) -> None:
        await self.chat.start_session(make_agent())
        for role in ("system", "narrator"):
            with self.subTest(role=role), self.assertRaises(ValueError):
                self.chat.add_message(role, "x")
        self.assertEqual(len(self.chat.get_messages()), 1)

    async def test_tool_message_must_answer_known_call(self) -> None:
        await self.chat.start_session(make_agent())
        with self.assertRaises(ValueError):
            self.chat.add_message("tool", "{}", tool_call_id="call_1")
        self.chat.add_message(
            "assistant", "", tool_calls=[ToolCall(id="call_1", name="read_file")]
        )
        message = self.chat.add_message(
            "tool", "{}", tool_call_id="call_1", name="read_file"
        )
        self.assertEqual(message.tool_call_id, "call_1")

    async def test_get_messages_returns_a_copy(self) -> None:
        await self.chat.start_session(make_agent())
        snapshot = self.chat.get_messages()
        snapshot.append(ChatMessage(role="user", content="sneaky"))
        self.assertEqual(len(self.chat.get_messages()), 1)

    async def test_append_chunk_only_touches_assistant(self) -> None:
        await self.chat.start_session(make_agent())
        self.chat.add_message("user", "hi")
        self.chat.append_chunk_to_last_message("ignored")
        self.assertEqual(self.chat.get_messages()[-1].content, "hi")

        self.chat.add_message("assistant", "")
        self.chat.append_chunk_to_last_message("He")
        self.chat.append_chunk_to_last_message("llo")
        self.assertEqual(self.chat.get_messages()[-1].content, "Hello")

    async def test_attach_tool_calls_requires_assistant_tail(self) -> None:
        await self.chat.start_session(make_agent())
        self.chat.add_message("user", "hi")
        with self.assertRaises(ValueError):
            self.chat.attach_tool_calls([ToolCall(id="c", name="read_file")])
        self.chat.add_message("assistant", "raw json")
        self.chat.attach_tool_calls([ToolCall(id="c", name="read_file")], content="")
        last = self.chat.get_messages()[-1]
        self.assertEqual(last.content, "")
        self.assertEqual([c.id for c in last.tool_calls], ["c"])

    async def test_visible_messages_hide_system(self) -> None:
        await self.chat.start_session(make_agent())
        self.chat.add_message("user", "hi")
        self.assertEqual([m.role for m in self.chat.get_visible_messages()], ["user"])

    async def test_update_active_agent_keeps_history(self) -> None:
        await self.chat.start_session(make_agent(prompt="v1 {{agent_name}}"))
        self.chat.add_message("user", "hi")
        renamed = make_agent(prompt="v2 {{agent_name}}", name="Editor")
        await self.chat.update_active_agent(renamed)
        messages = self.chat.get_messages()
        self.assertEqual(messages[0].content, "v2 Editor")
        self.assertEqual(messages[1].content, "hi")
        self.assertIs(self.chat.get_active_agent(), renamed)

    async def test_update_active_agent_ignores_other_ids(self) -> None:
        original = make_agent(prompt="v1")
        await self.chat.start_session(original)
        await self.chat.update_active_agent(make_agent(agent_id="other", prompt="v2"))
        self.assertIs(self.chat.get_active_agent(), original)
        self.assertEqual(self.chat.get_messages()[0].content, "v1")

    async def test_clear_session(self) -> None:
        await self.chat.start_session(make_agent())
        self.chat.clear_session()
        self.assertFalse(self.chat.has_active_session())
        self.assertIsNone(self.chat.get_active_agent())
        self.assertEqual(self.chat.get_messages(), [])

    async def test_log_turn_marks_only_first_turn_as_new(self) -> None:
        await self.chat.start_session(make_agent())
        user = self.chat.add_message("user", "hi")
        reply = self.chat.add_message("assistant", "hello")
        usage = TokenUsage.from_counts(3, 4)
        await self.chat.log_turn(user, reply, usage)
        await self.chat.log_turn(user, reply)
        self.assertEqual(
            self.turns.records,
            [
                ("writer", "hi", "hello", usage, True),
                ("writer", "hi", "hello", None, False),
            ],
        )
        self.assertEqual(self.tracker.get_total_tokens("writer"), 7)

    async def test_log_turn_without_session_is_a_no_op(self) -> None:
        message = ChatMessage(role="user", content="hi")
        await self.chat.log_turn(message, message)
        self.assertEqual(self.turns.records, [])


if __name__ == "__main__":
    unittest.main()
