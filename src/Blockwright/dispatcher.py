from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from Blockwright.authorization import CommandGate
from Blockwright.catalog import Capability, canonical_name, capability_of
from Blockwright.extraction import DIRECTIVE_MARKER, extract
from Blockwright.metrics import inc_counter
from Blockwright.sanitizer import truncate_chat
from Blockwright.schemas import Action
from Blockwright.validation import PlanValidator, Rejected
from Blockwright.world.interfaces import WorldInteraction

log = structlog.get_logger()

DEFAULT_DROP_ITEMS = ("oak_log", "birch_log", "spruce_log", "cobblestone", "coal")
# Command -> directive re-parsing happens at most this many levels deep
MAX_FALLBACK_DEPTH = 1

Sleep = Callable[[float], Awaitable[Any]]


def _coords(params: dict[str, Any]) -> tuple[float, float, float] | None:
    values = [params.get(axis) for axis in ("x", "y", "z")]
    if all(isinstance(v, int | float) and not isinstance(v, bool) for v in values):
        return values[0], values[1], values[2]  # type: ignore[return-value]
    return None


def _command_payload(params: dict[str, Any]) -> str | None:
    for key in ("command", "cmd"):
        value = params.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _item_list(value: Any) -> list[str]:
    if isinstance(value, list):
        items = [str(v).strip() for v in value]
    elif isinstance(value, str):
        items = [v.strip() for v in value.split(",")]
    else:
        items = []
    return [i for i in items if i]


class ActionDispatcher:
    """Route actions to micro primitives, compound helpers or raw commands.

    Raw commands that cannot be sent are re-read as a directive line
    (``//<command>``) once; actions recovered that way are validated against
    the current position and dispatched without any further fallback.
    """

    def __init__(
        self,
        world: WorldInteraction,
        gate: CommandGate,
        *,
        validator: PlanValidator | None = None,
        action_delay: float = 0.15,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._world = world
        self._gate = gate
        self._validator = validator or PlanValidator()
        self._action_delay = action_delay
        self._sleep = sleep

    async def dispatch(self, action: Action, identity: str | None, *, depth: int = 0) -> bool:
        name = canonical_name(action.name)
        capability = capability_of(name)
        log.info("dispatcher.dispatch", name=name, params=action.params, depth=depth)
        if capability is Capability.PRIMITIVE:
            return await self._run_primitive(name, action.params)
        if capability is Capability.COMPOUND:
            return await self._run_compound(name, action.params, identity)
        if capability is Capability.COMMAND:
            return await self._run_command(action.params, identity, depth)

        inc_counter("dispatcher.unknown")
        log.info("dispatcher.unknown", name=action.name)
        self._world.chat(truncate_chat(f"Unknown action: {action.name}"))
        return False

    # --- micro primitives ---

    async def _run_primitive(self, name: str, params: dict[str, Any]) -> bool:
        coords = _coords(params)
        if coords is None:
            log.info("dispatcher.primitive.missing_coords", name=name, params=params)
            return False
        if name == "goto":
            return bool(await self._world.goto(*coords))
        if name == "inspect":
            block = await self._world.inspect(*coords)
            label = params.get("blockName") or block or "unknown"
            x, y, z = coords
            self._world.chat(truncate_chat(f"Inspect: {label} at {x},{y},{z}"))
            log.info("dispatcher.inspect", block=block, x=x, y=y, z=z)
            return block is not None
        # dig and mine share the same collaborator call
        ok = bool(await self._world.dig(*coords))
        log.info("dispatcher.dig", ok=ok, coords=coords)
        return ok

    # --- compound helpers ---

    async def _run_compound(self, name: str, params: dict[str, Any], identity: str | None) -> bool:
        if name == "dropitems":
            if not identity:
                return False
            items = _item_list(params.get("items")) or list(DEFAULT_DROP_ITEMS)
            return bool(await self._world.drop_items(identity, items))
        if name == "gotoplayer":
            player = params.get("player")
            target = player if isinstance(player, str) and player.strip() else identity
            if not target:
                return False
            return bool(await self._world.goto_player(target.strip()))
        if name == "ensureworkbench":
            return bool(await self._world.ensure_workbench())
        if name == "craftwoodpickaxe":
            return bool(await self._world.ensure_wood_pickaxe())
        if name == "craftstonepickaxe":
            return bool(await self._world.ensure_stone_pickaxe())
        # status
        line = f"{self._world.status_line()} op:{str(self._gate.state.elevated).lower()}"
        self._world.chat(truncate_chat(line))
        return True

    # --- raw commands ---

    async def _run_command(self, params: dict[str, Any], identity: str | None, depth: int) -> bool:
        cmd = _command_payload(params)
        if not cmd:
            log.info("dispatcher.command.missing", params=params)
            return False
        self._world.chat(truncate_chat(f"Running command: {cmd}"))
        if self._send_command(cmd):
            return True
        if depth >= MAX_FALLBACK_DEPTH:
            return False
        return await self._fallback(cmd, identity, depth)

    def _send_command(self, cmd: str) -> bool:
        if not self._gate.check():
            inc_counter("dispatcher.command.refused")
            log.info("dispatcher.command.refused", command=cmd)
            return False
        line = cmd if cmd.startswith("/") else "/" + cmd
        try:
            self._world.run_command(line)
        except Exception:
            inc_counter("dispatcher.command.error")
            log.warning("dispatcher.command.error", command=line, exc_info=True)
            self._world.chat("Failed to send command")
            return False
        inc_counter("dispatcher.command.sent")
        log.info("dispatcher.command.sent", command=line)
        return True

    async def _fallback(self, cmd: str, identity: str | None, depth: int) -> bool:
        text = cmd[1:] if cmd.startswith("/") else cmd
        actions = extract(DIRECTIVE_MARKER + text, "directive")
        if not actions:
            log.info("dispatcher.command.fallback_empty", command=cmd)
            return False
        inc_counter("dispatcher.command.fallback")
        log.info("dispatcher.command.fallback", command=cmd, actions=[a.name for a in actions])
        for fa in actions:
            try:
                result = self._validator.validate(fa, self._world.position())
                if isinstance(result, Rejected):
                    self._world.chat(result.notice())
                    continue
                await self.dispatch(result.action, identity, depth=depth + 1)
            except Exception:
                inc_counter("dispatcher.fallback.error")
                log.warning("dispatcher.fallback.error", name=fa.name, exc_info=True)
            await self._sleep(self._action_delay)
        return True
