"""Expand ``@path/to/note.md`` mentions in user messages into context blocks."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
import re

from .agent_config import AgentConfig
from .exceptions import FileStoreError
from .file_store import FileStore
from .glob_matcher import normalize_path
from .permission_guard import FileOperationType, has_permission

LOGGER = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"(?:^|\s)@(\S+)")

TEXT_EXTENSIONS = frozenset(
    {
        "md", "txt", "json", "csv", "yaml", "yml", "xml", "html", "css",
        "js", "ts", "py", "sh", "cfg", "ini", "toml", "log",
    }
)


def find_mentions(text: str) -> list[str]:
    return [match.group(1) for match in MENTION_PATTERN.finditer(text)]


def _block(path: str, body: str) -> str:
    return f"--- @{path} ---\n{body}\n--- END ---"


async def inject_file_references(
    text: str, config: AgentConfig, store: FileStore
) -> str:
    """Prepend a ``[Referenced files]`` preamble for every mentioned vault file.

    Unknown paths are skipped. Files the agent may not read become
    ``[Access denied]``, non-text files ``[Binary file]``.
    """
    blocks: list[str] = []
    for mention in find_mentions(text):
        path = normalize_path(mention)
        try:
            if not await store.is_file(path):
                continue
        except FileStoreError:
            continue
        if not has_permission(config, FileOperationType.READ, path):
            LOGGER.info(
                "references.denied",
                extra={"event": "references.denied", "agent": config.name, "path": path},
            )
            blocks.append(_block(path, "[Access denied]"))
            continue
        if PurePosixPath(path).suffix.lstrip(".").lower() not in TEXT_EXTENSIONS:
            blocks.append(_block(path, "[Binary file]"))
            continue
        try:
            content = await store.read(path)
        except (FileStoreError, OSError):
            blocks.append(_block(path, "[Could not read file]"))
            continue
        blocks.append(_block(path, content))

    if not blocks:
        return text
    joined = "\n\n".join(blocks)
    return f"[Referenced files]\n{joined}\n\n{text}"
