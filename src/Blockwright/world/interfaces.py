"""Interface of the external game-interaction collaborator."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

Position = tuple[float, float, float]


class WorldInteraction(Protocol):
    """Motion, interaction and chat surface the agent core drives.

    Movement, digging, crafting and inventory semantics live entirely behind
    this protocol. Coroutine methods may take arbitrarily long; the core never
    applies a timeout to them.
    """

    def position(self) -> Position:
        """Current agent position."""

    async def goto(self, x: float, y: float, z: float) -> bool:
        """Approach the coordinate; True once arrived."""

    async def inspect(self, x: float, y: float, z: float) -> str | None:
        """Name of the block at the coordinate, or None if unknown."""

    async def dig(self, x: float, y: float, z: float) -> bool:
        """Approach and break the block at the coordinate."""

    async def drop_items(self, player: str, items: Sequence[str]) -> bool:
        """Walk to ``player`` and toss every stack matching ``items``."""

    async def goto_player(self, player: str) -> bool:
        """Navigate next to ``player``."""

    async def ensure_workbench(self) -> bool:
        """Make sure a crafting table is placed nearby."""

    async def ensure_wood_pickaxe(self) -> bool:
        """Make sure a wooden pickaxe is in the inventory."""

    async def ensure_stone_pickaxe(self) -> bool:
        """Make sure a stone pickaxe is in the inventory."""

    def status_line(self) -> str:
        """Short health/inventory summary."""

    def run_command(self, command: str) -> None:
        """Send a raw server command (leading '/' included); raises on failure."""

    def chat(self, text: str) -> None:
        """Post a visible notice on the chat channel."""

    async def wander(self) -> None:
        """Low-risk idle movement used when no plan is available."""
