"""Top-level package for vault-agents."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .agent_config import AgentConfig, ParsedAgent, parse_agent_file
    from .agent_registry import AgentRegistry
    from .chat_manager import ChatManager
    from .config import ensure_config_dir, load_config
    from .exceptions import (
        ConfigurationError,
        PermissionDeniedError,
        ProviderError,
        VaultAgentsError,
    )
    from .file_store import LocalVaultStore
    from .orchestrator import AgentOrchestrator
    from .tools.registry import ToolRegistry

__all__ = [
    "AgentConfig",
    "AgentOrchestrator",
    "AgentRegistry",
    "ChatManager",
    "ConfigurationError",
    "LocalVaultStore",
    "ParsedAgent",
    "PermissionDeniedError",
    "ProviderError",
    "ToolRegistry",
    "VaultAgentsError",
    "ensure_config_dir",
    "load_config",
    "parse_agent_file",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols so that importing the package stays cheap."""
    if name in {"AgentConfig", "ParsedAgent", "parse_agent_file"}:
        from . import agent_config

        return getattr(agent_config, name)
    if name == "AgentRegistry":
        from .agent_registry import AgentRegistry

        return AgentRegistry
    if name == "ChatManager":
        from .chat_manager import ChatManager

        return ChatManager
    if name in {"ensure_config_dir", "load_config"}:
        from .config import ensure_config_dir, load_config

        return {"ensure_config_dir": ensure_config_dir, "load_config": load_config}[name]
    if name in {
        "ConfigurationError",
        "PermissionDeniedError",
        "ProviderError",
        "VaultAgentsError",
    }:
        from . import exceptions

        return getattr(exceptions, name)
    if name == "LocalVaultStore":
        from .file_store import LocalVaultStore

        return LocalVaultStore
    if name == "AgentOrchestrator":
        from .orchestrator import AgentOrchestrator

        return AgentOrchestrator
    if name == "ToolRegistry":
        from .tools.registry import ToolRegistry

        return ToolRegistry
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
