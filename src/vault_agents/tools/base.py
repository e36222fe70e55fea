from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from functools import cached_property
import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from ..agent_config import AgentConfig
from ..exceptions import OperationRejectedError, ToolArgumentError
from ..file_store import FileStore
from ..permission_guard import FileOperationType, patterns_for_operation

LOGGER = logging.getLogger(__name__)

# (agent_name, operation, target) -> approved?
ConfirmHandler = Callable[[str, FileOperationType, str], Awaitable[bool]]

ToolResult = dict[str, Any]


@dataclass(frozen=True)
class ToolDefinition:
    """Machine-readable description of a tool, as sent to the model."""

    name: str
    description: str
    parameters: dict[str, Any]

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ToolContext:
    """Collaborators a tool may use while executing for one agent."""

    config: AgentConfig
    store: FileStore
    confirm: ConfirmHandler | None = None

    async def confirm_destructive(self, operation: FileOperationType, target: str) -> None:
        """Ask the user to approve an operation when the agent requires it.

        Raises OperationRejectedError on denial. Without a confirmation handler
        the operation is allowed.
        """
        if not self.config.confirm_destructive:
            return
        if self.confirm is None:
            LOGGER.debug(
                "tool.confirm.skipped",
                extra={
                    "event": "tool.confirm.skipped",
                    "agent": self.config.name,
                    "operation": operation.value,
                },
            )
            return
        if not await self.confirm(self.config.name, operation, target):
            raise OperationRejectedError("Operation rejected by user.")


class ParamsSchema(BaseModel):
    """Base class for all tool parameter schemas."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Tool(ABC):
    """
    Abstract base class for all file tools.

    Subclasses set:
        name          – tool name the model calls
        description   – shown to the model
        operation     – capability list that gates the tool
        params_schema – a ParamsSchema subclass

    ``run()`` parses and validates the raw arguments, then calls the concrete
    ``execute()``, which must assert permissions before touching the store.
    """

    name: str
    description: str = ""
    operation: FileOperationType
    params_schema: type[ParamsSchema]

    @abstractmethod
    async def execute(
        self, params: ParamsSchema, ctx: ToolContext
    ) -> ToolResult:  # pragma: no cover - interface only
        ...

    def is_available(self, config: AgentConfig) -> bool:
        """A tool is offered only when its capability list is non-empty."""
        return bool(patterns_for_operation(config, self.operation))

    @cached_property
    def _schema_cache(self) -> dict[str, Any]:
        """Cached schema generation - computed once per tool instance."""
        raw_schema = self.params_schema.model_json_schema(by_alias=True)
        return self._clean_pydantic_schema(raw_schema)

    @staticmethod
    def _clean_pydantic_schema(schema: dict[str, Any]) -> dict[str, Any]:
        """Remove Pydantic-specific fields that model APIs don't need."""
        cleaned = {
            k: v
            for k, v in schema.items()
            if k not in ("$defs", "title", "$schema", "definitions")
        }
        properties = {
            name: {k: v for k, v in prop.items() if k != "title"}
            for name, prop in cleaned.get("properties", {}).items()
        }
        cleaned["properties"] = properties
        cleaned.setdefault("type", "object")
        cleaned.setdefault("required", [])
        return cleaned

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self._schema_cache,
        )

    def parse_arguments(self, raw_args: str | Mapping[str, Any] | None) -> ParamsSchema:
        """Decode and validate raw model arguments into the tool's schema."""
        if raw_args is None or raw_args == "":
            data: Any = {}
        elif isinstance(raw_args, str):
            try:
                data = json.loads(raw_args)
            except json.JSONDecodeError as exc:
                raise ToolArgumentError(
                    f"Invalid JSON arguments for {self.name}: {exc.msg}"
                ) from exc
        else:
            data = dict(raw_args)
        if not isinstance(data, dict):
            raise ToolArgumentError(f"Arguments for {self.name} must be a JSON object.")
        try:
            return self.params_schema.model_validate(data)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err.get('loc', ())) or 'arguments'}: "
                f"{err.get('msg', 'invalid value')}"
                for err in exc.errors()
            )
            raise ToolArgumentError(
                f"Invalid arguments for {self.name}: {problems}"
            ) from exc

    async def run(
        self, raw_args: str | Mapping[str, Any] | None, ctx: ToolContext
    ) -> ToolResult:
        """Validate, then execute."""
        params = self.parse_arguments(raw_args)
        return await self.execute(params, ctx)
