"""Pick the provider adapter named by an agent's config."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence

from ..agent_config import AgentConfig
from ..config import Config
from ..exceptions import ProviderError
from ..messages import ChatMessage
from ..tools.base import ToolDefinition
from .base import ChunkCallback, ModelProvider, ProviderResponse
from .ollama_provider import OllamaProvider
from .openai_compatible import OpenAICompatibleProvider


class ProviderRouter(ModelProvider):
    """Dispatch ``send`` to the adapter registered under ``config.provider``.

    An agent without a provider falls back to ``general.default_provider``.
    """

    def __init__(self, providers: Mapping[str, ModelProvider] | None = None) -> None:
        if providers is None:
            providers = {
                "ollama": OllamaProvider(),
                "openrouter": OpenAICompatibleProvider(),
            }
        self._providers = {name.lower(): provider for name, provider in providers.items()}

    @property
    def provider_names(self) -> list[str]:
        return sorted(self._providers)

    def resolve(self, config: AgentConfig, settings: Config) -> ModelProvider:
        name = (config.provider or settings.general.default_provider).strip().lower()
        provider = self._providers.get(name)
        if provider is None:
            supported = ", ".join(self.provider_names)
            raise ProviderError(
                f"Unsupported provider configured: {name}. Supported: {supported}."
            )
        return provider

    async def send(
        self,
        messages: Sequence[ChatMessage],
        config: AgentConfig,
        settings: Config,
        *,
        tools: Sequence[ToolDefinition] | None = None,
        on_chunk: ChunkCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ProviderResponse:
        return await self.resolve(config, settings).send(
            messages,
            config,
            settings,
            tools=tools,
            on_chunk=on_chunk,
            cancel_event=cancel_event,
        )

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
