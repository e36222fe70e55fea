"""Tests for the local filesystem vault store."""

from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from fakes import make_vault

from vault_agents.exceptions import FileStoreError
from vault_agents.file_store import TRASH_FOLDER, LocalVaultStore, is_root_folder


class LocalVaultStoreTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.store = make_vault(
            self.root,
            {
                "notes/a.md": "alpha",
                "notes/sub/b.md": "beta",
                ".obsidian/config": "{}",
                "top.md": "top",
            },
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_read_and_type_checks(self) -> None:
        self.assertEqual(await self.store.read("notes/a.md"), "alpha")
        self.assertTrue(await self.store.is_file("notes/a.md"))
        self.assertTrue(await self.store.is_folder("notes"))
        self.assertFalse(await self.store.exists("notes/zzz.md"))
        with self.assertRaises(FileStoreError):
            await self.store.read("notes")

    async def test_paths_outside_the_vault_are_rejected(self) -> None:
        with self.assertRaises(FileStoreError):
            await self.store.read("../outside.md")

    async def test_listing_skips_hidden_entries(self) -> None:
        self.assertEqual(
            await self.store.list_files(), ["notes/a.md", "notes/sub/b.md", "top.md"]
        )
        self.assertEqual(await self.store.list_folder("notes"), ["notes/a.md", "notes/sub"])

    async def test_create_refuses_existing_and_blocked_parents(self) -> None:
        with self.assertRaises(FileStoreError):
            await self.store.create("notes/a.md", "again")
        with self.assertRaises(FileStoreError):
            await self.store.create("top.md/child.md", "x")

    async def test_move_refuses_existing_destination(self) -> None:
        with self.assertRaises(FileStoreError):
            await self.store.move("notes/a.md", "top.md")
        await self.store.move("notes/a.md", "archive/a.md")
        self.assertEqual(await self.store.read("archive/a.md"), "alpha")

    async def test_delete_moves_to_trash_when_enabled(self) -> None:
        store = LocalVaultStore(self.root, use_trash=True)
        await store.delete("top.md")
        await self.store.create("top.md", "second")
        await store.delete("top.md")
        trash = self.root / TRASH_FOLDER
        self.assertEqual(sorted(p.name for p in trash.iterdir()), ["top 1.md", "top.md"])

    async def test_delete_missing_file(self) -> None:
        with self.assertRaises(FileStoreError):
            await self.store.delete("nope.md")

    async def test_mtime_of_missing_file(self) -> None:
        self.assertGreater(await self.store.mtime("top.md"), 0)
        with self.assertRaises(FileStoreError):
            await self.store.mtime("nope.md")

    def test_is_root_folder(self) -> None:
        for path in ("", "/", ".", "  "):
            self.assertTrue(is_root_folder(path))
        self.assertFalse(is_root_folder("notes"))


if __name__ == "__main__":
    unittest.main()
