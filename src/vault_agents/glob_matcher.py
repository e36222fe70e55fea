"""Glob matching for vault-relative paths with traversal protection."""

from __future__ import annotations

from collections.abc import Iterable
from functools import lru_cache
import logging
import re

LOGGER = logging.getLogger(__name__)

_SEPARATOR_SPLIT = re.compile(r"[\\/]")


def contains_path_traversal(path: str) -> bool:
    """Return whether any path component (``/`` or ``\\`` separated) is ``..``."""
    return ".." in _SEPARATOR_SPLIT.split(path)


def normalize_path(path: str) -> str:
    """Convert backslashes to forward slashes."""
    return path.replace("\\", "/")


def normalize_pattern(pattern: str) -> str:
    """Expand directory shorthand patterns.

    ``"/"`` means the whole vault and ``"Inbox/"`` means everything under
    ``Inbox``. Patterns already ending in ``**/`` are left alone.
    """
    normalized = normalize_path(pattern.strip())
    if normalized == "/":
        return "**"
    if normalized.endswith("/") and not normalized.endswith("**/"):
        return normalized + "**"
    return normalized


def _translate_segment(segment: str) -> str:
    """Translate one path segment (no ``/``) into a regex fragment."""
    out: list[str] = []
    i = 0
    n = len(segment)
    while i < n:
        c = segment[i]
        if c == "*":
            while i + 1 < n and segment[i + 1] == "*":
                i += 1
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            start = i + 1
            negate = segment[start : start + 1] in ("!", "^")
            if negate:
                start += 1
            # A "]" right after the opening bracket (or its negation) is a literal member.
            end = segment.find("]", start + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                members = "".join(
                    "\\" + m if m in "\\[]^" else m for m in segment[start:end]
                )
                out.append(f"[{'^/' if negate else ''}{members}]")
                i = end
        elif c == "{":
            end = segment.find("}", i)
            if end == -1:
                out.append(re.escape(c))
            else:
                options = segment[i + 1 : end].split(",")
                out.append(
                    "(?:" + "|".join(_translate_segment(opt) for opt in options) + ")"
                )
                i = end
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str]:
    segments = pattern.split("/")
    parts: list[str] = []
    last = len(segments) - 1
    for index, segment in enumerate(segments):
        if segment == "**":
            if index == last:
                # Trailing ** matches everything below, including nested folders.
                parts.append(".*" if index == 0 else "(?:/.*)?")
            elif index == 0:
                parts.append("(?:.*/)?")
            else:
                parts.append("(?:/.*)?/")
            continue
        if index > 0 and segments[index - 1] != "**":
            parts.append("/")
        parts.append(_translate_segment(segment))
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


def is_match(path: str, patterns: Iterable[str]) -> bool:
    """Return whether ``path`` matches any of ``patterns``.

    Empty pattern lists never match. Paths containing a ``..`` component are
    rejected outright and logged as a security event.
    """
    pattern_list = [p for p in patterns if isinstance(p, str) and p.strip()]
    if not pattern_list:
        return False

    if contains_path_traversal(path):
        LOGGER.warning(
            "glob.path_traversal_blocked",
            extra={"event": "glob.path_traversal_blocked", "path": path},
        )
        return False

    normalized_path = normalize_path(path)
    return any(
        _compile(normalize_pattern(pattern)).match(normalized_path) is not None
        for pattern in pattern_list
    )
