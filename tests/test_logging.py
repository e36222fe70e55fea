"""Tests for structured logging behavior."""

from __future__ import annotations

import io
import json
import logging
import tempfile
from pathlib import Path
import unittest

import structlog

from vault_agents.config import LoggingConfig
from vault_agents.logging_utils import configure_logging


class ConfigureLoggingTests(unittest.TestCase):
    """Validate configure_logging() handler setup behavior."""

    def setUp(self) -> None:
        # Preserve root logger state so tests do not pollute each other.
        root = logging.getLogger()
        self._original_level = root.level
        self._original_handlers = list(root.handlers)

    def tearDown(self) -> None:
        root = logging.getLogger()
        for handler in root.handlers:
            if handler not in self._original_handlers:
                handler.close()
        root.setLevel(self._original_level)
        root.handlers.clear()
        root.handlers.extend(self._original_handlers)

    def _stream_handlers(self) -> list[logging.Handler]:
        return [
            h
            for h in logging.getLogger().handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]

    def test_configure_logging_sets_root_level(self) -> None:
        configure_logging(LoggingConfig(level="DEBUG", structured=False))
        self.assertEqual(logging.getLogger().level, logging.DEBUG)

    def test_structured_output_uses_processor_formatter(self) -> None:
        configure_logging(LoggingConfig(level="DEBUG", structured=True))
        formatters = [h.formatter for h in logging.getLogger().handlers]
        self.assertTrue(
            any(isinstance(f, structlog.stdlib.ProcessorFormatter) for f in formatters)
        )

    def test_plain_formatter_when_not_structured(self) -> None:
        configure_logging(LoggingConfig(level="DEBUG", structured=False))
        formatters = [h.formatter for h in logging.getLogger().handlers]
        self.assertFalse(
            any(isinstance(f, structlog.stdlib.ProcessorFormatter) for f in formatters)
        )

    def test_structured_records_carry_extra_fields(self) -> None:
        configure_logging(LoggingConfig(level="DEBUG", structured=True))
        handler = self._stream_handlers()[0]
        buffer = io.StringIO()
        handler.setStream(buffer)

        logging.getLogger("vault_agents.test").warning(
            "permission.denied",
            extra={"event": "permission.denied", "agent": "Writer", "path": "a.md"},
        )

        data = json.loads(buffer.getvalue().strip().splitlines()[-1])
        self.assertEqual(data["event"], "permission.denied")
        self.assertEqual(data["agent"], "Writer")
        self.assertEqual(data["path"], "a.md")
        self.assertEqual(data["level"], "warning")

    def test_noisy_loggers_set_to_warning(self) -> None:
        configure_logging(LoggingConfig(level="DEBUG", structured=False))
        for name in ("httpx", "httpcore", "ollama"):
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)

    def test_file_handler_created(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = str(Path(tmp) / "logs" / "test.log")
            configure_logging(
                LoggingConfig(
                    level="DEBUG",
                    structured=False,
                    log_to_file=True,
                    log_file_path=log_path,
                )
            )
            file_handlers = [
                h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
            ]
            self.assertEqual(len(file_handlers), 1)
            self.assertTrue(Path(log_path).exists())
            for handler in file_handlers:
                logging.getLogger().removeHandler(handler)
                handler.close()

    def test_stderr_handler_filters_to_vault_agents(self) -> None:
        configure_logging(LoggingConfig(level="DEBUG", structured=False))
        handler = self._stream_handlers()[0]
        ours = logging.LogRecord(
            name="vault_agents.orchestrator",
            level=logging.WARNING,
            pathname="",
            lineno=0,
            msg="ok",
            args=(),
            exc_info=None,
        )
        other = logging.LogRecord(
            name="httpx",
            level=logging.WARNING,
            pathname="",
            lineno=0,
            msg="noise",
            args=(),
            exc_info=None,
        )
        self.assertTrue(handler.filter(ours))
        self.assertFalse(handler.filter(other))


if __name__ == "__main__":
    unittest.main()
