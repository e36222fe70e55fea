from __future__ import annotations

from pydantic import Field

from ..permission_guard import FileOperationType, assert_permission
from .base import ParamsSchema, Tool, ToolContext, ToolResult


class MoveFileParams(ParamsSchema):
    source: str = Field(alias="from")
    destination: str = Field(alias="to")


class MoveFileTool(Tool):
    name = "move_file"
    description = "Move or rename a file"
    operation = FileOperationType.MOVE
    params_schema = MoveFileParams

    async def execute(self, params: MoveFileParams, ctx: ToolContext) -> ToolResult:
        # Source and destination are checked independently.
        assert_permission(ctx.config, FileOperationType.MOVE, params.source)
        assert_permission(ctx.config, FileOperationType.MOVE, params.destination)
        await ctx.confirm_destructive(
            FileOperationType.MOVE, f"{params.source} -> {params.destination}"
        )
        await ctx.store.move(params.source, params.destination)
        return {
            "success": True,
            "message": f"File moved from {params.source} to {params.destination}",
        }
