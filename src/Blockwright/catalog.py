"""Allowlist of action names the agent will ever dispatch.

Names are grouped into capability classes. Aliases resolve to one canonical
name so that validation, dispatch and logging agree on spelling.
"""

from __future__ import annotations

from enum import Enum


class Capability(str, Enum):
    PRIMITIVE = "primitive"
    COMPOUND = "compound"
    COMMAND = "command"


# Geometry-bound micro primitives; every one needs numeric x, y, z.
PRIMITIVES: frozenset[str] = frozenset({"inspect", "goto", "dig", "mine"})
_PRIMITIVE_ALIASES: dict[str, str] = {"goto_coords": "goto", "move": "goto"}

_COMPOUND_ALIASES: dict[str, str] = {
    "dropitems": "dropitems",
    "gotoplayer": "gotoplayer",
    "ensureworkbench": "ensureworkbench",
    "crafttable": "ensureworkbench",
    "craftwoodpickaxe": "craftwoodpickaxe",
    "woodpick": "craftwoodpickaxe",
    "craftstonepickaxe": "craftstonepickaxe",
    "stonepick": "craftstonepickaxe",
    "status": "status",
}
COMPOUNDS: frozenset[str] = frozenset(_COMPOUND_ALIASES.values())

COMMANDS: frozenset[str] = frozenset({"command", "runcommand"})


def canonical_name(name: str) -> str:
    """Lower-case ``name`` and resolve known aliases."""
    key = (name or "").strip().lower()
    if key in _PRIMITIVE_ALIASES:
        return _PRIMITIVE_ALIASES[key]
    return _COMPOUND_ALIASES.get(key, key)


def capability_of(name: str) -> Capability | None:
    key = canonical_name(name)
    if key in PRIMITIVES:
        return Capability.PRIMITIVE
    if key in COMPOUNDS:
        return Capability.COMPOUND
    if key in COMMANDS:
        return Capability.COMMAND
    return None
