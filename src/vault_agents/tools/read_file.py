from __future__ import annotations

from pydantic import Field

from ..permission_guard import FileOperationType, assert_permission
from .base import ParamsSchema, Tool, ToolContext, ToolResult


class ReadFileParams(ParamsSchema):
    path: str = Field(description="Path relative to vault root (e.g. note.md)")


class ReadFileTool(Tool):
    name = "read_file"
    description = "Read the content of a file from the vault"
    operation = FileOperationType.READ
    params_schema = ReadFileParams

    async def execute(self, params: ReadFileParams, ctx: ToolContext) -> ToolResult:
        assert_permission(ctx.config, FileOperationType.READ, params.path)
        content = await ctx.store.read(params.path)
        return {"success": True, "content": content}
