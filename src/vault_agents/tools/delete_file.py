from __future__ import annotations

from ..permission_guard import FileOperationType, assert_permission
from .base import ParamsSchema, Tool, ToolContext, ToolResult


class DeleteFileParams(ParamsSchema):
    path: str


class DeleteFileTool(Tool):
    name = "delete_file"
    description = "Delete a file from the vault"
    operation = FileOperationType.DELETE
    params_schema = DeleteFileParams

    async def execute(self, params: DeleteFileParams, ctx: ToolContext) -> ToolResult:
        assert_permission(ctx.config, FileOperationType.DELETE, params.path)
        await ctx.confirm_destructive(FileOperationType.DELETE, params.path)
        await ctx.store.delete(params.path)
        return {"success": True, "message": f"File deleted successfully: {params.path}"}
