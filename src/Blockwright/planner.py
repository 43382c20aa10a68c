"""Planner service: prompt the model and turn its reply into actions."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

import structlog

from Blockwright.extraction import directive, extract, fenced_json, inline_json
from Blockwright.metrics import inc_counter
from Blockwright.planner_prompts import (
    AUTONOMOUS_INSTRUCTION,
    SYSTEM_ASSISTANT,
    SYSTEM_PLANNER,
    format_distance,
)
from Blockwright.sanitizer import sanitize_reply
from Blockwright.schemas import Action, Plan
from Blockwright.world.interfaces import Position

log = structlog.get_logger()


class TextGenerator(Protocol):
    async def generate_response(
        self,
        messages: list[dict],
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str | None: ...


def explicit_actions(message: str) -> list[Action]:
    """Actions spelled out directly in a chat message (JSON first, then ``//``)."""
    if not message or not message.strip():
        return []
    for strategy in (
        lambda t: fenced_json(t, "actions"),
        lambda t: inline_json(t, "actions"),
        directive,
    ):
        found = strategy(message)
        if found:
            return found
    return []


class PlannerService:
    def __init__(
        self,
        llm: TextGenerator,
        notify: Callable[[str], None],
        *,
        max_distance: float = 10.0,
        max_steps: int = 8,
    ) -> None:
        self._llm = llm
        self._notify = notify
        self._max_distance = max_distance
        self._max_steps = max_steps

    def _format(self, template: str, **extra: Any) -> str:
        return template.format(
            max_distance=format_distance(self._max_distance),
            max_steps=self._max_steps,
            **extra,
        )

    def autonomous_instruction(self, position: Position) -> str:
        x, y, z = (round(c) for c in position)
        return self._format(AUTONOMOUS_INSTRUCTION, x=x, y=y, z=z)

    def _show(self, reply: str) -> None:
        text = sanitize_reply(reply)
        if text:
            self._notify(text)

    async def request_plan(self, instruction: str) -> Plan | None:
        """Ask the model for a plan; None when nothing usable came back."""
        log.info("planner.request.initiated", kind="plan", instruction_preview=instruction[:200])
        reply = await self._llm.generate_response(
            [{"role": "user", "content": instruction}],
            system_prompt=self._format(SYSTEM_PLANNER),
        )
        if reply is None:
            inc_counter("planner.request.no_reply")
            return None
        self._show(reply)
        plan = extract(reply, "plan")
        inc_counter("planner.request.plan" if plan else "planner.request.empty")
        log.info(
            "planner.request.completed",
            kind="plan",
            steps=len(plan.steps) if isinstance(plan, Plan) else 0,
            reply_preview=reply[:400],
        )
        return plan if isinstance(plan, Plan) else None

    async def request_actions(self, identity: str, message: str) -> list[Action]:
        """Actions for a chat message, asking the model only when the message has none."""
        actions = explicit_actions(message)
        if actions:
            inc_counter("planner.request.explicit")
            log.info("planner.request.explicit", identity=identity, count=len(actions))
            return actions

        log.info("planner.request.initiated", kind="actions", identity=identity)
        reply = await self._llm.generate_response(
            [{"role": "user", "content": f"User {identity} said: {message}"}],
            system_prompt=self._format(SYSTEM_ASSISTANT),
        )
        if reply is None:
            inc_counter("planner.request.no_reply")
            return []
        self._show(reply)
        found = extract(reply, "actions", identity=identity)
        actions = found if isinstance(found, list) else []
        inc_counter("planner.request.actions" if actions else "planner.request.empty")
        log.info(
            "planner.request.completed",
            kind="actions",
            count=len(actions),
            reply_preview=reply[:400],
        )
        return actions
