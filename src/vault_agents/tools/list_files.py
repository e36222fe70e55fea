from __future__ import annotations

from pydantic import Field

from ..exceptions import FileStoreError
from ..file_store import is_root_folder
from ..permission_guard import FileOperationType, assert_permission, has_permission
from .base import ParamsSchema, Tool, ToolContext, ToolResult


class ListFilesParams(ParamsSchema):
    path: str = Field(description="Folder path. Use '/' for root")
    recursive: bool = Field(
        default=False, description="If true, list subdirectories recursively"
    )


class ListFilesTool(Tool):
    name = "list_files"
    description = "List files within a folder"
    operation = FileOperationType.READ
    params_schema = ListFilesParams

    async def execute(self, params: ListFilesParams, ctx: ToolContext) -> ToolResult:
        # Listing needs the read capability; each entry is then filtered by path.
        assert_permission(ctx.config, FileOperationType.READ, None)

        folder = "" if is_root_folder(params.path) else params.path.strip("/")
        if folder and not await ctx.store.is_folder(folder):
            raise FileStoreError(
                f"Directory not found or is not a directory: {params.path}"
            )

        entries = await ctx.store.list_folder(folder, recursive=params.recursive)
        files = [
            entry
            for entry in entries
            if has_permission(ctx.config, FileOperationType.READ, entry)
        ]
        return {"success": True, "files": files}
