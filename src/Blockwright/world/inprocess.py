"""Deterministic in-memory world used for local runs and tests."""

from __future__ import annotations

import math
import random
from collections.abc import Iterable, Sequence

from .interfaces import Position

Block = tuple[int, int, int]

PLANKS = (
    "oak_planks",
    "birch_planks",
    "spruce_planks",
    "jungle_planks",
    "acacia_planks",
    "dark_oak_planks",
    "mangrove_planks",
    "cherry_planks",
    "bamboo_planks",
)
LOGS = ("oak_log", "birch_log", "spruce_log")


class WorldError(RuntimeError):
    """Raised by the in-process world when a call is configured to fail."""


class InProcessWorld:
    """Concrete world collaborator backed by plain dictionaries.

    ``fail_on`` names methods that raise ``WorldError`` so callers can
    exercise failure isolation. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        *,
        position: Position = (0.0, 0.0, 0.0),
        blocks: dict[Block, str] | None = None,
        players: dict[str, Position] | None = None,
        inventory: dict[str, int] | None = None,
        fail_on: Iterable[str] = (),
        seed: int | None = None,
    ) -> None:
        self._position: Position = tuple(float(c) for c in position)  # type: ignore[assignment]
        self.blocks: dict[Block, str] = dict(blocks or {})
        self.players: dict[str, Position] = dict(players or {})
        self.inventory: dict[str, int] = dict(inventory or {})
        self.fail_on: set[str] = set(fail_on)
        self.health = 20
        self.food = 20
        self.calls: list[tuple] = []
        self.chat_log: list[str] = []
        self.commands: list[str] = []
        self._rng = random.Random(seed)

    # --- helpers ---

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise WorldError(f"{name} failed")

    def _count(self, names: Iterable[str]) -> int:
        return sum(self.inventory.get(n, 0) for n in names)

    def _take(self, names: Sequence[str], amount: int) -> None:
        for n in names:
            have = self.inventory.get(n, 0)
            used = min(have, amount)
            if used:
                self.inventory[n] = have - used
                amount -= used
            if amount <= 0:
                return

    def _give(self, name: str, amount: int = 1) -> None:
        self.inventory[name] = self.inventory.get(name, 0) + amount

    def _nearby(self, block_name: str, radius: float) -> Block | None:
        for pos, name in self.blocks.items():
            if name == block_name and math.dist(pos, self._position) <= radius:
                return pos
        return None

    # --- WorldInteraction ---

    def position(self) -> Position:
        return self._position

    async def goto(self, x: float, y: float, z: float) -> bool:
        self._record("goto", x, y, z)
        self._position = (float(x), float(y), float(z))
        return True

    async def inspect(self, x: float, y: float, z: float) -> str | None:
        self._record("inspect", x, y, z)
        return self.blocks.get((int(x), int(y), int(z)))

    async def dig(self, x: float, y: float, z: float) -> bool:
        self._record("dig", x, y, z)
        key = (int(x), int(y), int(z))
        name = self.blocks.get(key)
        if not name or name == "air":
            return False
        del self.blocks[key]
        self._give("cobblestone" if name == "stone" else name)
        return True

    async def drop_items(self, player: str, items: Sequence[str]) -> bool:
        self._record("drop_items", player, tuple(items))
        target = self.players.get(player)
        if target is None:
            return False
        self._position = target
        for wanted in items:
            for name in list(self.inventory):
                if name == wanted or wanted in name:
                    self.inventory[name] = 0
        return True

    async def goto_player(self, player: str) -> bool:
        self._record("goto_player", player)
        target = self.players.get(player)
        if target is None:
            return False
        self._position = target
        return True

    async def ensure_workbench(self) -> bool:
        self._record("ensure_workbench")
        if self._nearby("crafting_table", 6):
            return True
        if not self.inventory.get("crafting_table"):
            if self._count(PLANKS) < 4:
                return False
            self._take(PLANKS, 4)
            self._give("crafting_table")
        self._take(("crafting_table",), 1)
        x, y, z = self._position
        self.blocks[(int(x) + 1, int(y), int(z))] = "crafting_table"
        return True

    async def _ensure_pickaxe(self, item: str, head: Sequence[str]) -> bool:
        if self.inventory.get(item):
            return True
        if self._count(("stick",)) < 2:
            if self._count(PLANKS) < 2:
                return False
            self._take(PLANKS, 2)
            self._give("stick", 4)
        if self._count(head) < 3:
            return False
        if not self._nearby("crafting_table", 6):
            return False
        self._take(("stick",), 2)
        self._take(head, 3)
        self._give(item)
        return True

    async def ensure_wood_pickaxe(self) -> bool:
        self._record("ensure_wood_pickaxe")
        return await self._ensure_pickaxe("wooden_pickaxe", PLANKS)

    async def ensure_stone_pickaxe(self) -> bool:
        self._record("ensure_stone_pickaxe")
        return await self._ensure_pickaxe("stone_pickaxe", ("cobblestone",))

    def status_line(self) -> str:
        return (
            f"HP:{self.health} Food:{self.food} Wood:{self._count(LOGS)} "
            f"Planks:{self._count(PLANKS)} Stone:{self._count(('cobblestone',))}"
        )

    def run_command(self, command: str) -> None:
        self._record("run_command", command)
        self.commands.append(command)

    def chat(self, text: str) -> None:
        self.chat_log.append(text)

    async def wander(self) -> None:
        self._record("wander")
        x, y, z = self._position
        dx = self._rng.choice((-1, 1)) * self._rng.randint(3, 8)
        dz = self._rng.choice((-1, 1)) * self._rng.randint(3, 8)
        self._position = (x + dx, y, z + dz)
