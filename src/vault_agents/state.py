"""Single-turn busy guard shared by the orchestrator."""

from __future__ import annotations

import asyncio
from enum import Enum


class TurnState(str, Enum):
    IDLE = "IDLE"
    GENERATING = "GENERATING"


class TurnGuard:
    """Admit one turn at a time; a second claim fails instead of waiting."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = TurnState.IDLE

    @property
    def state(self) -> TurnState:
        return self._state

    async def claim(self) -> bool:
        async with self._lock:
            if self._state is not TurnState.IDLE:
                return False
            self._state = TurnState.GENERATING
            return True

    async def release(self) -> None:
        async with self._lock:
            self._state = TurnState.IDLE
