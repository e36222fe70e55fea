"""File-operation tools the model can call, gated by agent capabilities."""

from __future__ import annotations

from .base import ConfirmHandler, ParamsSchema, Tool, ToolContext, ToolDefinition
from .registry import ToolRegistry

__all__ = [
    "ConfirmHandler",
    "ParamsSchema",
    "Tool",
    "ToolContext",
    "ToolDefinition",
    "ToolRegistry",
]
