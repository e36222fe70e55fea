"""CLI entrypoint for vault-agents."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path

from rich.console import Console

from .agent_registry import AgentRegistry
from .chat_manager import ChatManager
from .cli import ChatSession, TerminalRenderer, make_confirm_handler, print_agents
from .config import ensure_config_dir, load_config
from .file_store import LocalVaultStore
from .logging_utils import configure_logging
from .orchestrator import AgentOrchestrator
from .providers import ProviderRouter
from .tools.registry import ToolRegistry
from .usage import TokenTracker


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-agents",
        description="Chat with permission-scoped agents over a folder of notes",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument("--vault", type=Path, help="Path to the notes vault")
    parser.add_argument("--agent", help="Agent id (folder name under the agents folder)")
    parser.add_argument("--config", type=Path, help="Alternate config.toml path")
    parser.add_argument(
        "--list-agents",
        action="store_true",
        help="List agents found in the vault and exit",
    )
    return parser


def _package_version() -> str:
    try:
        return metadata.version("vault-agents")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def main(argv: Sequence[str] | None = None) -> None:
    """Load configuration, discover agents, and run the terminal chat loop."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        print(f"vault-agents {_package_version()}")
        return
    if args.vault is None:
        parser.error("--vault is required")
    if not args.vault.is_dir():
        parser.error(f"vault folder not found: {args.vault}")

    if args.config is None:
        ensure_config_dir()
    settings = load_config(args.config)
    configure_logging(settings.logging)

    console = Console()
    store = LocalVaultStore(args.vault)
    registry = AgentRegistry(store)

    with asyncio.Runner() as runner:
        runner.run(registry.scan(settings.general.agents_folder))

        if args.list_agents:
            print_agents(console, registry)
            return

        if args.agent:
            agent = registry.get_agent(args.agent)
        else:
            enabled = registry.get_enabled_agents()
            agent = enabled[0] if enabled else None
        if agent is None:
            parser.exit(1, "vault-agents: no matching enabled agent found\n")

        chat = ChatManager(
            store,
            settings,
            token_tracker=TokenTracker(settings.usage.path, enabled=settings.usage.enabled),
        )
        renderer = TerminalRenderer(console, chat)
        provider = ProviderRouter()
        orchestrator = AgentOrchestrator(
            chat,
            ToolRegistry.build_default(store, make_confirm_handler(console)),
            provider,
            callbacks=renderer.callbacks(),
            on_notice=renderer.notice,
            max_tool_rounds=settings.max_tool_rounds,
        )
        session = ChatSession(console, chat, orchestrator, renderer, registry, agent)

        runner.run(session.start())
        try:
            while True:
                text = console.input("[bold green]you>[/] ")
                if not runner.run(session.handle_line(text)):
                    break
        except (EOFError, KeyboardInterrupt):
            console.print()
        finally:
            runner.run(provider.aclose())


if __name__ == "__main__":
    main()
