"""Agent controller: owns the shared state and wires chat and the loop together."""

from __future__ import annotations

import asyncio

import structlog

from Blockwright.authorization import AuthorizationState, CommandGate
from Blockwright.chat_commands import parse_chat_command
from Blockwright.config import Settings
from Blockwright.dispatcher import ActionDispatcher, Sleep
from Blockwright.executor import PlanExecutor
from Blockwright.llm import LLMClient
from Blockwright.planner import PlannerService, TextGenerator
from Blockwright.scheduler import PlannerLoop, TickOutcome
from Blockwright.schemas import Action
from Blockwright.session import ExecutionSession
from Blockwright.validation import PlanValidator
from Blockwright.world.interfaces import WorldInteraction

log = structlog.get_logger()

ERROR_NOTICE = "Error: planning failed, check the model service."
LOOP_STARTED = "Autonomous loop started"
LOOP_STOPPED = "Autonomous loop stopped"


class AgentController:
    """Single owner of ``AuthorizationState``, ``ExecutionSession`` and the loop.

    Everything else receives these by reference and changes them only through
    their named operations.
    """

    def __init__(
        self,
        settings: Settings,
        world: WorldInteraction,
        llm: TextGenerator | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.world = world
        self.auth = AuthorizationState.from_settings(settings)
        self.gate = CommandGate(self.auth, world.chat)
        self.session = ExecutionSession()
        self.validator = PlanValidator(settings.max_step_distance)
        self.dispatcher = ActionDispatcher(
            world,
            self.gate,
            validator=self.validator,
            action_delay=settings.chat_action_delay,
            sleep=sleep,
        )
        self.executor = PlanExecutor(self.dispatcher, self.validator, world, sleep=sleep)
        self.llm = llm if llm is not None else LLMClient(settings)
        self.planner = PlannerService(
            self.llm,
            world.chat,
            max_distance=settings.max_step_distance,
            max_steps=settings.planner_max_steps,
        )
        self.loop = PlannerLoop(self.autonomous_tick, settings.planner_interval_seconds)

    # --- loop control ---

    def start(self) -> bool:
        started = self.loop.start()
        self.world.chat(LOOP_STARTED)
        return started

    def stop(self) -> bool:
        stopped = self.loop.stop()
        self.world.chat(LOOP_STOPPED)
        return stopped

    async def startup(self) -> None:
        if self.settings.planner_enabled:
            self.start()

    async def aclose(self) -> None:
        await self.loop.aclose()
        close = getattr(self.llm, "close", None)
        if close is not None:
            await close()

    # --- autonomous path ---

    async def autonomous_tick(self) -> TickOutcome:
        if self.session.busy:
            return TickOutcome.SKIPPED_BUSY
        instruction = self.planner.autonomous_instruction(self.world.position())
        plan = await self.planner.request_plan(instruction)
        if plan is not None and plan.steps:
            started = await self.executor.execute(
                plan.steps,
                self.session,
                label="autonomous",
                max_steps=self.settings.planner_max_steps,
                step_delay=self.settings.planner_step_delay,
            )
            return TickOutcome.RAN if started else TickOutcome.SKIPPED_BUSY
        # A chat plan may have claimed the session while the model was thinking
        if self.session.busy:
            return TickOutcome.SKIPPED_BUSY
        await self.world.wander()
        return TickOutcome.WANDERED

    # --- chat path ---

    async def handle_chat(self, sender: str, message: str) -> None:
        if sender == self.settings.agent_username:
            return
        text = (message or "").strip()
        if not text:
            return

        if self.gate.is_directive(text):
            ack = self.gate.apply_directive(sender, text)
            if ack:
                self.world.chat(ack)
            return

        lowered = text.lower()
        if lowered == "start":
            self.start()
            return
        if lowered == "stop":
            self.stop()
            return
        if lowered == "status":
            await self.dispatcher.dispatch(Action(name="status"), sender)
            return

        try:
            await self._chat_actions(sender, text)
        except Exception:
            log.error("agent.chat.failed", sender=sender, exc_info=True)
            self.world.chat(ERROR_NOTICE)

    async def _chat_actions(self, sender: str, text: str) -> bool:
        actions = parse_chat_command(text, sender)
        if not actions:
            if self.session.busy:
                log.info("agent.chat.dropped_busy", sender=sender)
                return False
            actions = await self.planner.request_actions(sender, text)
        if not actions:
            log.info("agent.chat.no_actions", sender=sender)
            return False
        return await self.executor.execute(
            actions,
            self.session,
            identity=sender,
            label="chat",
            max_steps=self.settings.chat_max_actions,
            step_delay=self.settings.chat_action_delay,
        )
