"""Discover ``<agents_folder>/<id>/agent.md`` files and keep them parsed."""

from __future__ import annotations

import logging

from .agent_config import ParsedAgent, parse_agent_file
from .exceptions import ConfigurationError, FileStoreError
from .file_store import FileStore

LOGGER = logging.getLogger(__name__)

AGENT_FILE_NAME = "agent.md"


def _normalize_folder(folder: str) -> str:
    return folder.replace("\\", "/").strip("/")


class AgentRegistry:
    """Lookup, listing and per-agent hot reload of vault agents."""

    def __init__(self, store: FileStore) -> None:
        self._store = store
        self._agents: dict[str, ParsedAgent] = {}

    def _find_agent_files(self, files: list[str], prefix: str) -> list[str]:
        """Keep files that are exactly ``<prefix><id>/agent.md``."""
        matches = []
        for path in files:
            if not path.startswith(prefix):
                continue
            parts = path[len(prefix) :].split("/")
            if len(parts) == 2 and parts[1] == AGENT_FILE_NAME:
                matches.append(path)
        return matches

    async def _parse_agent_at(self, file_path: str) -> ParsedAgent:
        folder_path = file_path.rsplit("/", 1)[0]
        result = parse_agent_file(await self._store.read(file_path))
        return ParsedAgent(
            id=folder_path.rsplit("/", 1)[-1],
            folder_path=folder_path,
            file_path=file_path,
            config=result.config,
            prompt_template=result.prompt_template,
        )

    async def scan(self, agents_folder: str) -> list[ParsedAgent]:
        """Replace the registry with every valid agent under ``agents_folder``.

        Invalid agent files are skipped with a warning.
        """
        self._agents.clear()
        prefix = _normalize_folder(agents_folder) + "/"
        agent_files = self._find_agent_files(await self._store.list_files(), prefix)

        for file_path in agent_files:
            try:
                agent = await self._parse_agent_at(file_path)
            except (ConfigurationError, FileStoreError) as exc:
                LOGGER.warning(
                    "agents.skipped",
                    extra={"event": "agents.skipped", "path": file_path, "error": str(exc)},
                )
                continue
            self._agents[agent.id] = agent

        LOGGER.info(
            "agents.scanned",
            extra={
                "event": "agents.scanned",
                "folder": prefix.rstrip("/"),
                "count": len(self._agents),
            },
        )
        return self.get_all_agents()

    async def reload_agent(self, agent_id: str, agents_folder: str) -> ParsedAgent:
        """Re-read one agent file and replace its entry.

        Raises:
            ConfigurationError: if the file is gone (the entry is dropped) or
                no longer parses.
        """
        file_path = f"{_normalize_folder(agents_folder)}/{agent_id}/{AGENT_FILE_NAME}"
        if not await self._store.is_file(file_path):
            self._agents.pop(agent_id, None)
            raise ConfigurationError(f"Agent file not found: {file_path}")
        agent = await self._parse_agent_at(file_path)
        self._agents[agent.id] = agent
        return agent

    def get_agent(self, agent_id: str) -> ParsedAgent | None:
        return self._agents.get(agent_id)

    def get_all_agents(self) -> list[ParsedAgent]:
        return list(self._agents.values())

    def get_enabled_agents(self) -> list[ParsedAgent]:
        return [agent for agent in self._agents.values() if agent.config.enabled]
