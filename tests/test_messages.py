"""Tests for conversation value types."""

from __future__ import annotations

from types import SimpleNamespace
import unittest

from vault_agents.messages import ChatMessage, TokenUsage, ToolCall


class ToolCallTests(unittest.TestCase):
    def test_from_openai_dict(self) -> None:
        call = ToolCall.from_api(
            {"id": "call_1", "function": {"name": "read_file", "arguments": '{"path": "a.md"}'}},
            fallback_id="x",
        )
        self.assertEqual(call, ToolCall(id="call_1", name="read_file", arguments='{"path": "a.md"}'))

    def test_from_sdk_object_with_decoded_arguments(self) -> None:
        payload = SimpleNamespace(
            function=SimpleNamespace(name="list_files", arguments={"path": "/"})
        )
        call = ToolCall.from_api(payload, fallback_id="call_7")
        self.assertEqual(call.id, "call_7")
        self.assertEqual(call.arguments, '{"path": "/"}')

    def test_nameless_call_is_dropped(self) -> None:
        self.assertIsNone(ToolCall.from_api({"function": {"arguments": "{}"}}, "x"))
        self.assertIsNone(ToolCall.from_api({"id": "x"}, "x"))


class TokenUsageTests(unittest.TestCase):
    def test_from_dict_accepts_both_spellings(self) -> None:
        self.assertEqual(
            TokenUsage.from_dict({"promptTokens": 2, "completionTokens": 3}).total_tokens, 5
        )
        self.assertEqual(
            TokenUsage.from_dict({"prompt_tokens": 2, "completion_tokens": 3, "total_tokens": 9}),
            TokenUsage(2, 3, 9),
        )
        self.assertIsNone(TokenUsage.from_dict(None))


class ChatMessageTests(unittest.TestCase):
    def test_api_shape_of_tool_exchange(self) -> None:
        assistant = ChatMessage(
            role="assistant", content="", tool_calls=[ToolCall(id="c1", name="read_file")]
        )
        self.assertEqual(
            assistant.to_api_dict(),
            {
                "role": "assistant",
                "content": "",
                "tool_calls": [
                    {
                        "id": "c1",
                        "type": "function",
                        "function": {"name": "read_file", "arguments": "{}"},
                    }
                ],
            },
        )
        tool = ChatMessage(role="tool", content="{}", tool_call_id="c1", name="read_file")
        self.assertEqual(
            tool.to_api_dict(),
            {"role": "tool", "content": "{}", "tool_call_id": "c1", "name": "read_file"},
        )

    def test_from_dict_restores_snapshot(self) -> None:
        original = ChatMessage(
            role="assistant",
            content="hi",
            timestamp=12.5,
            tool_calls=[ToolCall(id="c1", name="read_file", arguments='{"path": "a.md"}')],
        )
        self.assertEqual(ChatMessage.from_dict(original.to_dict()), original)

    def test_from_dict_rejects_unknown_role(self) -> None:
        with self.assertRaises(ValueError):
            ChatMessage.from_dict({"role": "narrator", "content": "x"})


if __name__ == "__main__":
    unittest.main()
