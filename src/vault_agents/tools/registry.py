"""Tool catalog lookup and guarded dispatch of model tool calls."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any

from ..agent_config import AgentConfig
from ..exceptions import (
    FileStoreError,
    OperationRejectedError,
    PermissionDeniedError,
    ToolError,
    ToolNotFoundError,
)
from ..file_store import FileStore
from .base import ConfirmHandler, Tool, ToolContext, ToolDefinition, ToolResult
from .create_file import CreateFileTool
from .delete_file import DeleteFileTool
from .list_files import ListFilesTool
from .move_file import MoveFileTool
from .read_file import ReadFileTool
from .write_file import WriteFileTool

LOGGER = logging.getLogger(__name__)

# Failures a model can recover from; they become tool-result payloads.
RECOVERABLE_ERRORS: tuple[type[BaseException], ...] = (
    ToolError,
    PermissionDeniedError,
    FileStoreError,
    OperationRejectedError,
    OSError,
)


class ToolRegistry:
    """Fixed catalog of file tools bound to one file store."""

    def __init__(self, store: FileStore, confirm: ConfirmHandler | None = None) -> None:
        self._store = store
        self._confirm = confirm
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool
        LOGGER.debug(
            "tools.registered", extra={"event": "tools.registered", "tool": tool.name}
        )

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def all(self) -> list[Tool]:
        return list(self._tools.values())

    def list_tool_names(self) -> list[str]:
        return list(self._tools)

    def get_available_tools(self, config: AgentConfig) -> list[ToolDefinition]:
        """Definitions of the tools ``config`` is granted at all, in catalog order."""
        return [tool.definition for tool in self._tools.values() if tool.is_available(config)]

    def set_confirm_handler(self, confirm: ConfirmHandler | None) -> None:
        self._confirm = confirm

    async def execute_tool(
        self,
        config: AgentConfig,
        tool_name: str,
        args: str | Mapping[str, Any] | None,
    ) -> ToolResult:
        """Run one tool call and always return a structured result.

        ``{"success": True, ...}`` on success; ``{"success": False, "error": ...}``
        for unknown tools, bad arguments, permission denials, user rejections,
        file-store failures and any other error raised by a tool. Cancellation
        still propagates.
        """
        try:
            tool = self._tools.get(tool_name)
            if tool is None:
                raise ToolNotFoundError(f"Tool {tool_name} not recognized.")
            ctx = ToolContext(config=config, store=self._store, confirm=self._confirm)
            result = await tool.run(args, ctx)
        except RECOVERABLE_ERRORS as exc:
            LOGGER.warning(
                "tool.execute.failed",
                extra={
                    "event": "tool.execute.failed",
                    "tool": tool_name,
                    "agent": config.name,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return {"success": False, "error": str(exc)}
        except Exception as exc:
            LOGGER.exception(
                "tool.execute.crashed",
                extra={
                    "event": "tool.execute.crashed",
                    "tool": tool_name,
                    "agent": config.name,
                    "error_type": type(exc).__name__,
                },
            )
            return {
                "success": False,
                "error": f"Tool {tool_name} failed: {type(exc).__name__}: {exc}",
            }

        LOGGER.info(
            "tool.execute.ok",
            extra={"event": "tool.execute.ok", "tool": tool_name, "agent": config.name},
        )
        return result

    @classmethod
    def build_default(
        cls, store: FileStore, confirm: ConfirmHandler | None = None
    ) -> ToolRegistry:
        reg = cls(store, confirm)
        reg.register(ReadFileTool())
        reg.register(ListFilesTool())
        reg.register(WriteFileTool())
        reg.register(CreateFileTool())
        reg.register(MoveFileTool())
        reg.register(DeleteFileTool())
        return reg
