"""Model provider boundary and concrete adapters."""

from __future__ import annotations

from .base import (
    ChunkCallback,
    ModelProvider,
    ProviderResponse,
    extract_tool_calls_from_text,
    map_exception,
)
from .ollama_provider import OllamaProvider
from .openai_compatible import OpenAICompatibleProvider
from .router import ProviderRouter

__all__ = [
    "ChunkCallback",
    "ModelProvider",
    "OllamaProvider",
    "OpenAICompatibleProvider",
    "ProviderResponse",
    "ProviderRouter",
    "extract_tool_calls_from_text",
    "map_exception",
]
