"""Tests for capability-scoped permission decisions."""

from __future__ import annotations

import unittest

from fakes import make_config

from vault_agents.exceptions import PermissionDeniedError
from vault_agents.permission_guard import (
    FileOperationType,
    assert_permission,
    has_permission,
    is_vault_root_path,
)


class HasPermissionTests(unittest.TestCase):
    def test_empty_capability_denies_every_path_and_null_check(self) -> None:
        config = make_config(read=["/"], vault_root_access=True)
        for operation in (
            FileOperationType.WRITE,
            FileOperationType.CREATE,
            FileOperationType.MOVE,
            FileOperationType.DELETE,
        ):
            with self.subTest(operation=operation):
                self.assertFalse(has_permission(config, operation, None))
                self.assertFalse(has_permission(config, operation, "a.md"))
                self.assertFalse(has_permission(config, operation, "notes/a.md"))

    def test_root_flag_cannot_reenable_disabled_capability(self) -> None:
        config = make_config(write=[], vault_root_access=True)
        self.assertFalse(has_permission(config, FileOperationType.WRITE, "a.md"))

    def test_root_files_need_vault_root_access(self) -> None:
        config = make_config(read=["/"])
        self.assertFalse(has_permission(config, FileOperationType.READ, "a.md"))
        self.assertTrue(has_permission(config, FileOperationType.READ, "notes/a.md"))

        rooted = make_config(read=["/"], vault_root_access=True)
        self.assertTrue(has_permission(rooted, FileOperationType.READ, "a.md"))

    def test_path_must_match_patterns(self) -> None:
        config = make_config(write=["drafts/*.md"])
        self.assertTrue(has_permission(config, FileOperationType.WRITE, "drafts/a.md"))
        self.assertFalse(has_permission(config, FileOperationType.WRITE, "notes/a.md"))

    def test_null_path_is_a_capability_existence_check(self) -> None:
        config = make_config(delete=["trash/"])
        self.assertTrue(has_permission(config, FileOperationType.DELETE, None))

    def test_is_vault_root_path(self) -> None:
        self.assertTrue(is_vault_root_path("a.md"))
        self.assertFalse(is_vault_root_path("notes/a.md"))
        self.assertFalse(is_vault_root_path("notes\\a.md"))


class AssertPermissionTests(unittest.TestCase):
    def test_denial_carries_diagnostics(self) -> None:
        config = make_config(name="Scribe", write=["drafts/"])
        with self.assertRaises(PermissionDeniedError) as ctx:
            assert_permission(config, FileOperationType.WRITE, "notes/a.md")
        self.assertEqual(ctx.exception.agent_name, "Scribe")
        self.assertEqual(ctx.exception.operation, "write")
        self.assertEqual(ctx.exception.path, "notes/a.md")
        self.assertIn("Permission denied", str(ctx.exception))

    def test_global_denial_uses_placeholder_path(self) -> None:
        config = make_config()
        with self.assertRaises(PermissionDeniedError) as ctx:
            assert_permission(config, FileOperationType.READ, None)
        self.assertEqual(ctx.exception.path, "global")

    def test_allowed_operation_returns_none(self) -> None:
        config = make_config(read=["notes/"])
        self.assertIsNone(assert_permission(config, FileOperationType.READ, "notes/a.md"))


if __name__ == "__main__":
    unittest.main()
