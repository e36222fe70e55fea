"""Tests for @file mention expansion."""

from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from fakes import make_config, make_vault

from vault_agents.references import find_mentions, inject_file_references


class ReferenceTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.store = make_vault(
            self.root,
            {
                "notes/a.md": "alpha",
                "notes/pic.png": "not really an image",
                "private/p.md": "secret",
            },
        )
        self.config = make_config(read=["notes/"])

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_find_mentions(self) -> None:
        self.assertEqual(
            find_mentions("@notes/a.md and @b.md but not me@example.com"),
            ["notes/a.md", "b.md"],
        )

    async def test_text_without_mentions_is_unchanged(self) -> None:
        self.assertEqual(
            await inject_file_references("plain text", self.config, self.store),
            "plain text",
        )

    async def test_readable_file_is_inlined(self) -> None:
        result = await inject_file_references("see @notes/a.md", self.config, self.store)
        self.assertEqual(
            result,
            "[Referenced files]\n--- @notes/a.md ---\nalpha\n--- END ---\n\nsee @notes/a.md",
        )

    async def test_denied_binary_and_unknown_files(self) -> None:
        result = await inject_file_references(
            "@private/p.md @notes/pic.png @notes/missing.md @../escape.md",
            self.config,
            self.store,
        )
        self.assertIn("--- @private/p.md ---\n[Access denied]\n--- END ---", result)
        self.assertIn("--- @notes/pic.png ---\n[Binary file]\n--- END ---", result)
        self.assertNotIn("missing.md ---", result)
        self.assertNotIn("escape.md ---", result)
        self.assertNotIn("secret", result)


if __name__ == "__main__":
    unittest.main()
