"""Sequential, failure-isolated plan execution."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

import structlog

from Blockwright.dispatcher import ActionDispatcher, Sleep
from Blockwright.metrics import inc_counter, observe_histogram
from Blockwright.schemas import Action
from Blockwright.session import ExecutionSession
from Blockwright.validation import PlanValidator, Rejected
from Blockwright.world.interfaces import WorldInteraction

log = structlog.get_logger()

MAX_RATIONALE_CHARS = 120


def rationale_notice(rationale: str | None) -> str | None:
    if not rationale:
        return None
    text = " ".join(rationale.split())
    if not text:
        return None
    return f"Plan: {text[:MAX_RATIONALE_CHARS]}"


class PlanExecutor:
    """Run steps strictly in order against one ``ExecutionSession``.

    Each step is validated against the agent position immediately before it
    runs. Rejections and dispatch failures are reported and skipped; the rest
    of the plan keeps going.
    """

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        validator: PlanValidator,
        world: WorldInteraction,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._dispatcher = dispatcher
        self._validator = validator
        self._world = world
        self._sleep = sleep

    async def execute(
        self,
        steps: Sequence[Action],
        session: ExecutionSession,
        *,
        identity: str | None = None,
        label: str = "plan",
        max_steps: int = 8,
        step_delay: float = 0.2,
    ) -> bool:
        with session.claim(label) as acquired:
            if not acquired:
                inc_counter("executor.plan.dropped_busy")
                return False
            start = time.perf_counter()
            bounded = list(steps)[:max_steps]
            inc_counter("executor.plan.started")
            log.info(
                "executor.plan.started",
                label=label,
                identity=identity,
                steps=len(bounded),
                dropped=max(0, len(steps) - len(bounded)),
            )
            try:
                for index, step in enumerate(bounded):
                    await self._run_step(index, step, identity, step_delay)
            finally:
                dur_ms = int((time.perf_counter() - start) * 1000)
                observe_histogram("executor.plan.ms", dur_ms)
                log.info("executor.plan.completed", label=label, duration_ms=dur_ms)
        return True

    def _notify(self, text: str) -> None:
        try:
            self._world.chat(text)
        except Exception:
            inc_counter("executor.notice.failed")
            log.warning("executor.notice.failed", text=text, exc_info=True)

    async def _run_step(
        self, index: int, step: Action, identity: str | None, step_delay: float
    ) -> None:
        try:
            result = self._validator.validate(step, self._world.position())
            if isinstance(result, Rejected):
                self._notify(result.notice())
                return
            action = result.action
            notice = rationale_notice(action.rationale)
            if notice:
                self._notify(notice)
            ok = await self._dispatcher.dispatch(action, identity)
        except Exception:
            inc_counter("executor.step.error")
            log.warning("executor.step.failed", index=index, name=step.name, exc_info=True)
        else:
            inc_counter("executor.step.ok" if ok else "executor.step.failed")
            log.info("executor.step.done", index=index, name=action.name, ok=ok)
        await self._sleep(step_delay)
