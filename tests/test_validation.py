import math

import pytest

from Blockwright.metrics import get_counter
from Blockwright.schemas import Action
from Blockwright.validation import (
    MISSING_COORDINATES,
    MISSING_NAME,
    OUT_OF_RANGE,
    UNSUPPORTED,
    Accepted,
    PlanValidator,
    Rejected,
    validate_step,
)

ORIGIN = (0.0, 0.0, 0.0)


def test_far_step_rejected_near_step_accepted():
    far = validate_step(Action(name="goto", params={"x": 20, "y": 0, "z": 0}), ORIGIN, 10)
    near = validate_step(Action(name="goto", params={"x": 5, "y": 0, "z": 5}), ORIGIN, 10)
    assert isinstance(far, Rejected) and far.reason == OUT_OF_RANGE
    assert far.notice() == "Skipping out-of-range step at 20,0,0"
    assert isinstance(near, Accepted)
    assert get_counter("validator.rejected.out_of_range") == 1


def test_boundary_distance_is_inclusive():
    result = validate_step(Action(name="dig", params={"x": 10, "y": 0, "z": 0}), ORIGIN, 10)
    assert result.ok


def test_distance_is_measured_from_current_position():
    step = Action(name="inspect", params={"x": 105, "y": 64, "z": 0})
    assert not validate_step(step, ORIGIN).ok
    assert validate_step(step, (100.0, 64.0, 0.0)).ok


@pytest.mark.parametrize(
    "params",
    [
        {},
        {"x": 1, "y": 2},
        {"x": "1", "y": 2, "z": 3},
        {"x": True, "y": 2, "z": 3},
        {"x": math.nan, "y": 2, "z": 3},
        {"x": math.inf, "y": 2, "z": 3},
    ],
)
def test_primitives_need_finite_numeric_coordinates(params):
    result = validate_step(Action(name="goto", params=params), ORIGIN)
    assert isinstance(result, Rejected)
    assert result.reason == MISSING_COORDINATES
    assert result.notice() == "Skipping step: missing coordinates"


def test_missing_name_rejected():
    result = validate_step(Action(name="  ", params={"x": 0, "y": 0, "z": 0}), ORIGIN)
    assert isinstance(result, Rejected)
    assert result.reason == MISSING_NAME


def test_unsupported_name_rejected():
    result = validate_step(Action(name="fly", params={}), ORIGIN)
    assert isinstance(result, Rejected)
    assert result.reason == UNSUPPORTED
    assert result.notice() == "Skipping unsupported step type: fly"
    assert get_counter("validator.rejected.unsupported_step_type") == 1


def test_aliases_and_case_are_canonicalized_without_touching_params():
    step = Action(name="Goto_Coords", params={"x": 1, "y": 2, "z": 3}, rationale="walk")
    result = validate_step(step, ORIGIN)
    assert isinstance(result, Accepted)
    assert result.action.name == "goto"
    assert result.action.params == step.params
    assert result.action.rationale == "walk"
    # original stays untouched
    assert step.name == "Goto_Coords"


def test_compounds_and_commands_skip_geometry():
    for name in ("status", "crafttable", "woodpick", "runcommand"):
        assert validate_step(Action(name=name), ORIGIN).ok


def test_plan_validator_uses_configured_bound():
    v = PlanValidator(max_distance=3)
    step = Action(name="goto", params={"x": 4, "y": 0, "z": 0})
    assert not v.validate(step, ORIGIN).ok
    assert PlanValidator().validate(step, ORIGIN).ok
