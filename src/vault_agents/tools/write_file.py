from __future__ import annotations

from typing import Literal

from pydantic import Field

from ..permission_guard import FileOperationType, assert_permission
from .base import ParamsSchema, Tool, ToolContext, ToolResult


class WriteFileParams(ParamsSchema):
    path: str
    content: str
    mode: Literal["overwrite", "append", "prepend"] = Field(
        default="overwrite",
        description="overwrite replaces the file; append/prepend keep existing text",
    )


class WriteFileTool(Tool):
    name = "write_file"
    description = "Write or modify a file in the vault"
    operation = FileOperationType.WRITE
    params_schema = WriteFileParams

    async def execute(self, params: WriteFileParams, ctx: ToolContext) -> ToolResult:
        assert_permission(ctx.config, FileOperationType.WRITE, params.path)
        await ctx.confirm_destructive(FileOperationType.WRITE, params.path)

        if params.mode == "overwrite":
            new_content = params.content
        else:
            existing = await ctx.store.read(params.path)
            if params.mode == "append":
                new_content = existing + "\n" + params.content
            else:
                new_content = params.content + "\n" + existing

        await ctx.store.modify(params.path, new_content)
        return {"success": True, "message": f"File wrote successfully to {params.path}"}
