"""Load knowledge files matched by an agent's ``sources`` globs."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import logging

from .exceptions import FileStoreError
from .file_store import FileStore
from .glob_matcher import is_match

LOGGER = logging.getLogger(__name__)

# Rough characters-per-token ratio used for the context budget.
CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class ResolvedFile:
    path: str
    content: str
    mtime: float


def wrap_block(path: str, content: str) -> str:
    """Wrap file content in a labelled block for the model context."""
    return f"--- START: {path} ---\n{content}\n--- END: {path} ---"


async def resolve_globs(sources: Sequence[str], store: FileStore) -> list[str]:
    """Return vault files matching any of ``sources``, sorted by path."""
    if not sources:
        return []
    return sorted(path for path in await store.list_files() if is_match(path, sources))


async def load_knowledge_content(
    sources: Sequence[str], store: FileStore, max_tokens: int | None = None
) -> str:
    """Concatenate matched files, keeping the freshest ones within budget.

    When the blocks exceed ``max_tokens * CHARS_PER_TOKEN`` characters the
    least recently modified files are dropped. At least one file is always
    kept. Output is ordered by path.
    """
    paths = await resolve_globs(sources, store)
    if not paths:
        return ""

    entries: list[ResolvedFile] = []
    for path in paths:
        try:
            entries.append(
                ResolvedFile(
                    path=path,
                    content=await store.read(path),
                    mtime=await store.mtime(path),
                )
            )
        except FileStoreError as exc:
            LOGGER.warning(
                "knowledge.read_failed",
                extra={"event": "knowledge.read_failed", "path": path, "error": str(exc)},
            )

    max_chars = max_tokens * CHARS_PER_TOKEN if max_tokens else None
    entries.sort(key=lambda entry: entry.mtime, reverse=True)

    included: list[ResolvedFile] = []
    total_chars = 0
    for entry in entries:
        block_len = len(wrap_block(entry.path, entry.content))
        if max_chars is not None and total_chars + block_len > max_chars and included:
            break
        included.append(entry)
        total_chars += block_len

    included.sort(key=lambda entry: entry.path)
    return "\n\n".join(wrap_block(entry.path, entry.content) for entry in included)
