from __future__ import annotations

from ..permission_guard import FileOperationType, assert_permission
from .base import ParamsSchema, Tool, ToolContext, ToolResult


class CreateFileParams(ParamsSchema):
    path: str
    content: str


class CreateFileTool(Tool):
    name = "create_file"
    description = "Create a new file in the vault"
    operation = FileOperationType.CREATE
    params_schema = CreateFileParams

    async def execute(self, params: CreateFileParams, ctx: ToolContext) -> ToolResult:
        assert_permission(ctx.config, FileOperationType.CREATE, params.path)
        await ctx.confirm_destructive(FileOperationType.CREATE, params.path)
        await ctx.store.create(params.path, params.content)
        return {
            "success": True,
            "message": f"File created successfully at {params.path}",
        }
