"""Per-step validation: schema, distance bound and name allowlist."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from Blockwright.catalog import PRIMITIVES, canonical_name, capability_of
from Blockwright.metrics import inc_counter
from Blockwright.sanitizer import truncate_chat
from Blockwright.schemas import Action
from Blockwright.world.interfaces import Position

log = structlog.get_logger()

DEFAULT_MAX_DISTANCE = 10.0

MISSING_NAME = "missing name"
MISSING_COORDINATES = "missing coordinates"
OUT_OF_RANGE = "out of range"
UNSUPPORTED = "unsupported step type"


@dataclass(frozen=True)
class Accepted:
    """Normalized action cleared for dispatch."""

    action: Action
    ok: bool = True


@dataclass(frozen=True)
class Rejected:
    """Validation failure; never aborts the surrounding plan."""

    reason: str
    action: Action
    detail: Mapping[str, Any] = field(default_factory=dict)
    ok: bool = False

    def notice(self) -> str:
        if self.reason == OUT_OF_RANGE:
            p = self.action.params
            text = f"Skipping out-of-range step at {p.get('x')},{p.get('y')},{p.get('z')}"
        elif self.reason == UNSUPPORTED:
            text = f"Skipping unsupported step type: {self.action.name}"
        else:
            text = f"Skipping step: {self.reason}"
        return truncate_chat(text)


ValidationResult = Accepted | Rejected


def _finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def validate_step(
    step: Action,
    agent_position: Position,
    max_distance: float = DEFAULT_MAX_DISTANCE,
) -> ValidationResult:
    """Validate one step against the agent's position at execution time.

    Rules, in order: non-empty name; numeric x/y/z for primitives; Euclidean
    distance within ``max_distance``; name in the allowlist.
    """
    name = canonical_name(step.name)
    if not name:
        return _reject(MISSING_NAME, step)

    if name in PRIMITIVES:
        coords = [step.params.get(axis) for axis in ("x", "y", "z")]
        if not all(_finite_number(c) for c in coords):
            return _reject(MISSING_COORDINATES, step)
        try:
            distance = math.dist(tuple(float(c) for c in agent_position), coords)
        except (TypeError, ValueError, OverflowError):
            return _reject(OUT_OF_RANGE, step, position=repr(agent_position))
        if distance > max_distance:
            return _reject(
                OUT_OF_RANGE, step, distance=round(distance, 2), max_distance=max_distance
            )

    if capability_of(name) is None:
        return _reject(UNSUPPORTED, step)

    if name == step.name:
        return Accepted(action=step)
    return Accepted(action=step.model_copy(update={"name": name}))


def _reject(reason: str, step: Action, **detail: Any) -> Rejected:
    inc_counter(f"validator.rejected.{reason.replace(' ', '_')}")
    log.info("validator.rejected", reason=reason, name=step.name, params=step.params, **detail)
    return Rejected(reason=reason, action=step, detail=detail)


class PlanValidator:
    """Validator bound to a configured distance limit."""

    def __init__(self, max_distance: float = DEFAULT_MAX_DISTANCE) -> None:
        self.max_distance = max_distance

    def validate(self, step: Action, agent_position: Position) -> ValidationResult:
        return validate_step(step, agent_position, self.max_distance)
