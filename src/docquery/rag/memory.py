"""Conversation memory: an ordered, append-only transcript of chat turns."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

HUMAN_PREFIX = "Human"
AI_PREFIX = "AI"


@dataclass(frozen=True)
class ConversationTurn:
    input: str
    output: str


class ConversationMemory:
    """Process-lifetime transcript. Writes are serialised; clearing is all-or-nothing."""

    def __init__(self) -> None:
        self._turns: list[ConversationTurn] = []
        self._lock = asyncio.Lock()

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    async def save_context(self, input: str, output: str) -> None:
        async with self._lock:
            self._turns.append(ConversationTurn(input=input, output=output))

    async def load_history(self) -> str:
        """Render the transcript as ``Human: ...`` / ``AI: ...`` lines."""
        lines: list[str] = []
        for turn in self._turns:
            lines.append(f"{HUMAN_PREFIX}: {turn.input}")
            lines.append(f"{AI_PREFIX}: {turn.output}")
        return "\n".join(lines)

    async def clear(self) -> None:
        async with self._lock:
            self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)
