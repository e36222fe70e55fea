"""Capability-scoped permission checks for agent file operations."""

from __future__ import annotations

from enum import Enum
import logging
from typing import TYPE_CHECKING

from .exceptions import PermissionDeniedError
from .glob_matcher import is_match

if TYPE_CHECKING:
    from .agent_config import AgentConfig

LOGGER = logging.getLogger(__name__)


class FileOperationType(str, Enum):
    """File operations an agent can be granted, one capability list each."""

    READ = "read"
    WRITE = "write"
    CREATE = "create"
    MOVE = "move"
    DELETE = "delete"


def patterns_for_operation(
    config: AgentConfig, operation: FileOperationType
) -> tuple[str, ...]:
    """Return the glob patterns ``config`` declares for ``operation``."""
    return tuple(getattr(config, FileOperationType(operation).value, ()) or ())


def is_vault_root_path(path: str) -> bool:
    """A path with no directory separator lives at the vault root."""
    return "/" not in path and "\\" not in path


def has_permission(
    config: AgentConfig, operation: FileOperationType, path: str | None
) -> bool:
    """Return whether ``config`` allows ``operation`` on ``path``.

    The checks run in a fixed order:

    1. An operation with no patterns is denied, whatever the path.
    2. Vault-root paths are denied unless ``vault_root_access`` is set.
    3. The path must match one of the operation's patterns.
    4. With ``path=None`` only the existence of the capability is checked.
    """
    patterns = patterns_for_operation(config, operation)
    if not patterns:
        return False

    if path and not config.vault_root_access and is_vault_root_path(path):
        return False

    if path:
        return is_match(path, patterns)

    return True


def assert_permission(
    config: AgentConfig, operation: FileOperationType, path: str | None
) -> None:
    """Raise :class:`PermissionDeniedError` unless the operation is allowed."""
    if has_permission(config, operation, path):
        return
    op = FileOperationType(operation)
    LOGGER.info(
        "permission.denied",
        extra={
            "event": "permission.denied",
            "agent": config.name,
            "operation": op.value,
            "path": path or "global",
        },
    )
    raise PermissionDeniedError(config.name, op.value, path or "global")
