import pytest

from Blockwright.authorization import REFUSAL_NOTICE, AuthorizationState, CommandGate
from Blockwright.dispatcher import DEFAULT_DROP_ITEMS, ActionDispatcher
from Blockwright.metrics import get_counter
from Blockwright.schemas import Action
from Blockwright.world import InProcessWorld, WorldError


def _dispatcher(world, sleeps, *, elevated=True, commands_enabled=False):
    state = AuthorizationState(elevated=elevated, commands_enabled=commands_enabled)
    gate = CommandGate(state, world.chat)
    return ActionDispatcher(world, gate, action_delay=0.15, sleep=sleeps)


@pytest.mark.asyncio
async def test_goto_moves_the_agent(world, sleeps):
    d = _dispatcher(world, sleeps)
    assert await d.dispatch(Action(name="move", params={"x": 1, "y": 64, "z": 1}), "Steve")
    assert world.position() == (1.0, 64.0, 1.0)


@pytest.mark.asyncio
async def test_inspect_posts_notice(world, sleeps):
    d = _dispatcher(world, sleeps)
    assert await d.dispatch(Action(name="inspect", params={"x": 2, "y": 64, "z": 1}), None)
    assert world.chat_log == ["Inspect: oak_log at 2,64,1"]


@pytest.mark.asyncio
async def test_inspect_unknown_block(world, sleeps):
    d = _dispatcher(world, sleeps)
    assert not await d.dispatch(Action(name="inspect", params={"x": 9, "y": 9, "z": 9}), None)
    assert world.chat_log == ["Inspect: unknown at 9,9,9"]


@pytest.mark.asyncio
async def test_mine_digs_and_collects(world, sleeps):
    d = _dispatcher(world, sleeps)
    assert await d.dispatch(Action(name="mine", params={"x": 3, "y": 64, "z": 0}), None)
    assert (3, 64, 0) not in world.blocks
    assert world.inventory["cobblestone"] == 6


@pytest.mark.asyncio
async def test_primitive_without_coordinates_fails(world, sleeps):
    d = _dispatcher(world, sleeps)
    assert not await d.dispatch(Action(name="dig", params={"x": 1}), None)
    assert world.calls == []


@pytest.mark.asyncio
async def test_dropitems_defaults_and_comma_string(world, sleeps):
    d = _dispatcher(world, sleeps)
    assert await d.dispatch(Action(name="dropitems"), "Steve")
    assert world.calls[-1] == ("drop_items", "Steve", DEFAULT_DROP_ITEMS)
    await d.dispatch(Action(name="dropitems", params={"items": "dirt, stone"}), "Steve")
    assert world.calls[-1] == ("drop_items", "Steve", ("dirt", "stone"))


@pytest.mark.asyncio
async def test_gotoplayer_prefers_param_then_identity(world, sleeps):
    d = _dispatcher(world, sleeps)
    assert await d.dispatch(Action(name="gotoplayer", params={"player": "Owner"}), "Steve")
    assert world.position() == (-3.0, 64.0, 2.0)
    assert await d.dispatch(Action(name="gotoplayer"), "Steve")
    assert world.position() == (4.0, 64.0, 4.0)
    assert not await d.dispatch(Action(name="gotoplayer"), None)


@pytest.mark.asyncio
async def test_crafting_helpers_route_to_world(world, sleeps):
    world.inventory["oak_planks"] = 12
    d = _dispatcher(world, sleeps)
    assert await d.dispatch(Action(name="crafttable"), None)
    assert await d.dispatch(Action(name="woodpick"), None)
    assert await d.dispatch(Action(name="stonepick"), None)
    assert world.inventory["wooden_pickaxe"] == 1
    assert world.inventory["stone_pickaxe"] == 1


@pytest.mark.asyncio
async def test_status_reports_elevated_flag(world, sleeps):
    d = _dispatcher(world, sleeps, elevated=False)
    assert await d.dispatch(Action(name="status"), None)
    assert world.chat_log[-1].endswith("op:false")
    assert world.chat_log[-1].startswith("HP:20")


@pytest.mark.asyncio
async def test_unknown_action(world, sleeps):
    d = _dispatcher(world, sleeps)
    assert not await d.dispatch(Action(name="teleport"), None)
    assert world.chat_log == ["Unknown action: teleport"]
    assert get_counter("dispatcher.unknown") == 1


@pytest.mark.asyncio
async def test_command_is_sent_with_slash(world, sleeps):
    d = _dispatcher(world, sleeps)
    assert await d.dispatch(Action(name="command", params={"cmd": "time set day"}), None)
    assert world.commands == ["/time set day"]
    assert world.chat_log == ["Running command: time set day"]
    assert get_counter("dispatcher.command.sent") == 1


@pytest.mark.asyncio
async def test_command_keeps_existing_slash(world, sleeps):
    d = _dispatcher(world, sleeps, elevated=False, commands_enabled=True)
    assert await d.dispatch(Action(name="runcommand", params={"command": "/weather clear"}), None)
    assert world.commands == ["/weather clear"]


@pytest.mark.asyncio
async def test_command_without_payload_fails(world, sleeps):
    d = _dispatcher(world, sleeps)
    assert not await d.dispatch(Action(name="command", params={"command": "  "}), None)
    assert world.commands == []


@pytest.mark.asyncio
async def test_refused_command_falls_back_to_directive(world, sleeps):
    d = _dispatcher(world, sleeps, elevated=False, commands_enabled=False)
    action = Action(name="command", params={"command": "/inspect(2,64,1); dig(3,64,0)"})
    assert await d.dispatch(action, "Steve")
    assert world.commands == []
    assert REFUSAL_NOTICE in world.chat_log
    assert "Inspect: oak_log at 2,64,1" in world.chat_log
    assert (3, 64, 0) not in world.blocks
    assert sleeps.delays == [0.15, 0.15]
    assert get_counter("dispatcher.command.refused") == 1
    assert get_counter("dispatcher.command.fallback") == 1


@pytest.mark.asyncio
async def test_fallback_validates_against_current_position(world, sleeps):
    d = _dispatcher(world, sleeps, elevated=False)
    action = Action(name="command", params={"command": "goto(50,64,50)"})
    assert await d.dispatch(action, None)
    assert world.position() == (0.0, 64.0, 0.0)
    assert "Skipping out-of-range step at 50,64,50" in world.chat_log


@pytest.mark.asyncio
async def test_fallback_is_bounded_to_one_level(world, sleeps):
    d = _dispatcher(world, sleeps, elevated=False)
    action = Action(name="command", params={"command": "command(say hi)"})
    assert await d.dispatch(action, None)
    # depth 0 and depth 1 both announce and get refused, nothing deeper
    assert world.chat_log.count("Running command: command(say hi)") == 1
    assert world.chat_log.count("Running command: say hi") == 1
    assert world.chat_log.count(REFUSAL_NOTICE) == 2
    assert get_counter("dispatcher.command.fallback") == 1


@pytest.mark.asyncio
async def test_refused_command_without_directive_content_fails(world, sleeps):
    d = _dispatcher(world, sleeps, elevated=False)
    assert not await d.dispatch(Action(name="command", params={"command": "!!"}), None)


@pytest.mark.asyncio
async def test_send_failure_notice_and_fallback(sleeps):
    world = InProcessWorld(fail_on={"run_command"})
    d = _dispatcher(world, sleeps)
    assert not await d.dispatch(Action(name="command", params={"command": "time set day"}), None)
    assert "Failed to send command" in world.chat_log
    assert get_counter("dispatcher.command.error") == 1


@pytest.mark.asyncio
async def test_fallback_errors_are_contained(sleeps):
    world = InProcessWorld(fail_on={"run_command", "wander", "goto"})
    d = _dispatcher(world, sleeps)
    action = Action(name="command", params={"command": "goto(1,0,1); status"})
    assert await d.dispatch(action, None)
    assert get_counter("dispatcher.fallback.error") == 1
    assert world.chat_log[-1].startswith("HP:")


@pytest.mark.asyncio
async def test_fallback_continues_when_rejection_notice_fails(world, sleeps):
    posted = []

    def chat(text):
        if text.startswith("Skipping"):
            raise RuntimeError("chat channel down")
        posted.append(text)

    world.chat = chat
    d = _dispatcher(world, sleeps, elevated=False)
    action = Action(name="command", params={"command": "goto(50,64,50); status"})
    assert await d.dispatch(action, None)
    assert get_counter("dispatcher.fallback.error") == 1
    assert posted[-1].startswith("HP:")


@pytest.mark.asyncio
async def test_collaborator_errors_propagate_from_dispatch(sleeps):
    world = InProcessWorld(fail_on={"dig"})
    d = _dispatcher(world, sleeps)
    with pytest.raises(WorldError):
        await d.dispatch(Action(name="dig", params={"x": 0, "y": 0, "z": 1}), None)
