"""Per-agent token usage totals persisted as JSON."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from .messages import TokenUsage

LOGGER = logging.getLogger(__name__)


class TokenTracker:
    """Accumulate total tokens per agent id and persist them on every update."""

    def __init__(self, path: str | Path | None = None, enabled: bool = True) -> None:
        self.enabled = enabled
        self.path = Path(path).expanduser() if path is not None else None
        self._totals: dict[str, int] = self._read()

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError as exc:
            LOGGER.warning("Unable to enforce %o permissions for %s: %s", mode, path, exc)

    def _read(self) -> dict[str, int]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning(
                "usage.load_failed",
                extra={"event": "usage.load_failed", "path": str(self.path), "error": str(exc)},
            )
            return {}
        if not isinstance(payload, dict):
            return {}
        return {
            str(agent_id): int(total)
            for agent_id, total in payload.items()
            if isinstance(total, int) and not isinstance(total, bool)
        }

    def _write(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._enforce_permissions(self.path.parent, 0o700)
        self.path.write_text(
            json.dumps(self._totals, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        self._enforce_permissions(self.path)

    def update(self, agent_id: str, usage: TokenUsage | None) -> None:
        """Add ``usage.total_tokens`` to the agent's running total."""
        if not self.enabled or not agent_id or usage is None:
            return
        self._totals[agent_id] = self._totals.get(agent_id, 0) + usage.total_tokens
        try:
            self._write()
        except OSError as exc:
            LOGGER.warning(
                "usage.save_failed",
                extra={"event": "usage.save_failed", "path": str(self.path), "error": str(exc)},
            )

    def get_total_tokens(self, agent_id: str) -> int:
        return self._totals.get(agent_id, 0)

    def totals(self) -> dict[str, int]:
        return dict(self._totals)
