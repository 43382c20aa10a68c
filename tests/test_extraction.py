import pytest

from Blockwright.extraction import (
    directive,
    extract,
    fenced_json,
    inline_json,
    loose_actions,
    strategies_for,
    substitute_placeholders,
    to_number,
)
from Blockwright.metrics import get_counter
from Blockwright.schemas import Action, Plan
from Blockwright.validation import MISSING_COORDINATES, Rejected, validate_step

FENCED_ACTIONS = (
    "Here you go:\n"
    "```json\n"
    '{"actions": [{"name": "goto", "params": {"x": 1, "y": 64, "z": 2}}]}\n'
    "```\n"
    "//dig(5,64,5)"
)


def test_fenced_block_wins_over_directive_line():
    out = extract(FENCED_ACTIONS, "actions")
    assert out == [Action(name="goto", params={"x": 1, "y": 64, "z": 2})]
    assert get_counter("extract.strategy.fenced") == 1
    assert get_counter("extract.strategy.directive") == 0


def test_directive_mode_ignores_json():
    out = extract(FENCED_ACTIONS, "directive")
    assert out == [Action(name="dig", params={"x": 5, "y": 64, "z": 5})]


def test_fenced_block_without_expected_key_is_skipped():
    text = '```json\n{"foo": 1}\n```\n```\n{"actions": [{"name": "status"}]}\n```'
    assert fenced_json(text, "actions") == [Action(name="status")]


def test_plan_mode_returns_plan_with_rationale():
    text = (
        "```json\n"
        '{"plan": {"steps": [{"name": "inspect", "params": {"x": 2, "y": 64, "z": 1},'
        ' "rationale": "  look at the log "}]}}\n'
        "```"
    )
    plan = extract(text, "plan")
    assert isinstance(plan, Plan)
    assert plan.steps[0].name == "inspect"
    assert plan.steps[0].rationale == "look at the log"


def test_plan_mode_empty_steps_is_none():
    assert extract('{"plan": {"steps": []}}', "plan") is None


def test_plan_mode_does_not_use_directive():
    assert extract("//goto(1,2,3)", "plan") is None


def test_inline_json_walks_back_to_enclosing_object():
    text = (
        'prefix {"note": "x", "plan": {"steps": '
        '[{"name": "goto", "params": {"x": 1, "y": 2, "z": 3}}]}} tail'
    )
    plan = extract(text, "plan")
    assert plan is not None
    assert plan.steps == [Action(name="goto", params={"x": 1, "y": 2, "z": 3})]


def test_inline_json_is_string_aware():
    text = 'ok {"actions": [{"name": "command", "params": {"command": "say {hi}"}}]} done'
    assert inline_json(text, "actions") == [
        Action(name="command", params={"command": "say {hi}"})
    ]


def test_inline_json_unbalanced_is_none():
    assert inline_json('{"actions": [{"name": "goto"', "actions") is None


def test_non_object_entries_become_nameless_actions():
    out = extract('{"actions": [42, {"name": "status"}]}', "actions")
    assert out == [Action(), Action(name="status")]


def test_loose_action_params_json():
    text = 'Action: goto\nParams: {"x": 1, "y": 64, "z": 3}'
    assert loose_actions(text) == [Action(name="goto", params={"x": 1, "y": 64, "z": 3})]


def test_loose_action_params_key_value_with_placeholders():
    text = "Action: DropItems Params: {player: USERNAME, count=3}"
    out = loose_actions(text, identity="Steve")
    assert out == [Action(name="dropitems", params={"player": "Steve", "count": 3})]


def test_loose_command_patterns_are_deduplicated():
    text = 'I will run "command": "time set day" and then command(time set day)'
    assert loose_actions(text) == [Action(name="command", params={"command": "time set day"})]


def test_loose_inline_command_fragment():
    text = "Sure thing //then command('give PLAYER bread')"
    out = extract(text, "actions", identity="Alex")
    assert Action(name="command", params={"command": "give Alex bread"}) in out


def test_actions_mode_falls_back_to_directive():
    out = extract("please do this //inspect(1,64,2); goto(x=3, y=64, z=-1)", "actions")
    assert out == [
        Action(name="inspect", params={"x": 1, "y": 64, "z": 2}),
        Action(name="goto", params={"x": 3, "y": 64, "z": -1}),
    ]


def test_directive_key_values_and_flags():
    out = directive('//dropitems(items="oak_log", all=, fast)')
    assert out == [
        Action(name="dropitems", params={"items": "oak_log", "all": True, "fast": True})
    ]


def test_directive_command_keeps_commas():
    out = directive("//command(tellraw @a hello, world)")
    assert out == [Action(name="command", params={"command": "tellraw @a hello, world"})]


def test_directive_command_keyword_form():
    out = directive('//command(cmd="time set night")')
    assert out == [Action(name="command", params={"command": "time set night"})]


def test_directive_skips_malformed_segments():
    out = directive("//goto(1,2,3); not a call!; status")
    assert [a.name for a in out] == ["goto", "status"]


def test_directive_overflowing_number_keeps_its_axis():
    (out,) = directive("//goto(1e400,1,2,3)")
    assert out.params["x"] == float("inf")
    assert (out.params["y"], out.params["z"]) == (1, 2)
    assert "1e400" not in out.params
    rejected = validate_step(out, (0.0, 0.0, 0.0))
    assert isinstance(rejected, Rejected)
    assert rejected.reason == MISSING_COORDINATES


def test_directive_ignores_urls():
    assert directive("see https://example.com/page") is None


def test_directive_reads_only_first_line():
    assert directive("//status\ngoto(1,2,3)") == [Action(name="status")]


def test_extract_never_raises_on_garbage():
    for text in (None, "", "   ", "{{{{", "```json\n{", '{"actions": "nope"}'):
        assert extract(text, "actions") == []
        assert extract(text, "plan") is None


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        strategies_for("bogus")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "raw, expected",
    [("3", 3), ("-2", -2), ("1.5", 1.5), ("nan", None), ("inf", None), ("abc", None), ("", None)],
)
def test_to_number(raw, expected):
    assert to_number(raw) == expected


def test_substitute_placeholders_without_identity_is_noop():
    assert substitute_placeholders("tp USER", None) == "tp USER"
    assert substitute_placeholders("tp user", "Steve") == "tp Steve"
