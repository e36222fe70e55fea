"""Domain exception hierarchy for the vault agents runtime."""

from __future__ import annotations


class VaultAgentsError(RuntimeError):
    """Base class for all domain-level errors."""


class ConfigurationError(VaultAgentsError):
    """Raised when an agent file is malformed or misses required fields."""


class ConfigValidationError(VaultAgentsError):
    """Raised when application configuration cannot be validated safely."""


class PermissionDeniedError(VaultAgentsError):
    """Raised when an agent is not allowed to perform a file operation."""

    def __init__(self, agent_name: str, operation: str, path: str) -> None:
        self.agent_name = agent_name
        self.operation = operation
        self.path = path
        super().__init__(
            f"Permission denied: Agent '{agent_name}' is not allowed to "
            f"{operation} '{path}'"
        )


class FileStoreError(VaultAgentsError):
    """Raised when the file store cannot complete an operation."""


class OperationRejectedError(VaultAgentsError):
    """Raised when the user declines a destructive file operation."""


class ToolError(VaultAgentsError):
    """Base class for malformed tool invocations from the model."""


class ToolNotFoundError(ToolError):
    """Raised when the model requests a tool that does not exist."""


class ToolArgumentError(ToolError):
    """Raised when tool arguments cannot be parsed or validated."""


class ProviderError(VaultAgentsError):
    """Raised when the model provider fails for non-connectivity reasons."""


class ProviderConnectionError(ProviderError):
    """Raised when the provider host cannot be reached."""


class ModelNotFoundError(ProviderError):
    """Raised when the configured model is unavailable."""


class ToolsNotSupportedError(ProviderError):
    """Raised when the configured model cannot do tool calling."""


class EmptyResponseError(ProviderError):
    """Raised when a round ends with neither text nor tool calls."""


class GenerationCancelledError(VaultAgentsError):
    """Raised when the user aborts an in-flight generation."""


class ToolLoopExceededError(VaultAgentsError):
    """Raised when the model keeps requesting tools past the round ceiling."""

    def __init__(self, max_rounds: int) -> None:
        self.max_rounds = max_rounds
        super().__init__(
            f"The model requested tools for {max_rounds} consecutive rounds."
        )


class TurnInProgressError(VaultAgentsError):
    """Raised when a second turn is started while one is still running."""
