"""Tests for top-level package lazy exports."""

from __future__ import annotations

import unittest

import vault_agents


class PackageExportTests(unittest.TestCase):
    """Ensure __getattr__ and exported symbols behave as expected."""

    def test_lazy_exports_resolve_known_symbols(self) -> None:
        self.assertTrue(callable(vault_agents.load_config))
        self.assertTrue(callable(vault_agents.ensure_config_dir))
        self.assertTrue(callable(vault_agents.parse_agent_file))
        for name in vault_agents.__all__:
            with self.subTest(name=name):
                self.assertIsNotNone(getattr(vault_agents, name))

    def test_unknown_symbol_raises_attribute_error(self) -> None:
        with self.assertRaises(AttributeError):
            getattr(vault_agents, "THIS_DOES_NOT_EXIST")


if __name__ == "__main__":
    unittest.main()
