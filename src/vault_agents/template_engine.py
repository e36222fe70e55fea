"""Resolve ``{{variables}}`` in agent prompt templates.

Supported variables:

* ``{{agent_name}}``, ``{{user_name}}``
* ``{{date}}`` (YYYY-MM-DD), ``{{time}}`` (HH:MM), ``{{datetime}}``
* ``{{conversation_summary}}``, ``{{vault_structure}}`` (supplied by caller)
* ``{{knowledge_context}}`` - every file matched by the agent's ``sources``
* ``{{READ: path/to/file}}`` - one file, allowed by ``read`` or ``sources``
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
import re

from .agent_config import AgentConfig
from .exceptions import FileStoreError
from .file_store import FileStore
from .glob_matcher import is_match, normalize_path
from .knowledge import load_knowledge_content, wrap_block

LOGGER = logging.getLogger(__name__)

READ_PATTERN = re.compile(r"\{\{READ:\s*(.+?)\}\}")
KNOWLEDGE_TOKEN = "{{knowledge_context}}"


@dataclass
class TemplateContext:
    agent_config: AgentConfig
    store: FileStore
    user_name: str = ""
    conversation_summary: str = ""
    vault_structure: str = ""
    now: datetime | None = None


async def resolve_template(template: str, ctx: TemplateContext) -> str:
    """Return ``template`` with every supported variable expanded."""
    result = _replace_scalar_variables(template, ctx)

    if KNOWLEDGE_TOKEN in result:
        knowledge = await load_knowledge_content(
            ctx.agent_config.sources,
            ctx.store,
            ctx.agent_config.max_context_tokens,
        )
        result = result.replace(KNOWLEDGE_TOKEN, knowledge)

    return await _resolve_read_directives(result, ctx)


def _replace_scalar_variables(template: str, ctx: TemplateContext) -> str:
    now = ctx.now or datetime.now()
    date = now.strftime("%Y-%m-%d")
    time = now.strftime("%H:%M")
    replacements = {
        "{{agent_name}}": ctx.agent_config.name,
        "{{user_name}}": ctx.user_name,
        "{{date}}": date,
        "{{time}}": time,
        "{{datetime}}": f"{date} {time}",
        "{{conversation_summary}}": ctx.conversation_summary,
        "{{vault_structure}}": ctx.vault_structure,
    }
    result = template
    for token, value in replacements.items():
        result = result.replace(token, value)
    return result


async def _resolve_read_directives(template: str, ctx: TemplateContext) -> str:
    matches = list(READ_PATTERN.finditer(template))
    if not matches:
        return template

    result = template
    for match in matches:
        content = await _read_file_checked(match.group(1).strip(), ctx)
        result = result.replace(match.group(0), content, 1)
    return result


async def _read_file_checked(raw_path: str, ctx: TemplateContext) -> str:
    file_path = normalize_path(raw_path).strip("/")
    allowed = [*ctx.agent_config.read, *ctx.agent_config.sources]
    if not is_match(file_path, allowed):
        return f"[READ denied: {file_path} is not in read or sources]"
    try:
        content = await ctx.store.read(file_path)
    except FileStoreError:
        LOGGER.info(
            "template.read_failed",
            extra={"event": "template.read_failed", "path": file_path},
        )
        return f"[READ failed: {file_path} not found]"
    return wrap_block(file_path, content)
