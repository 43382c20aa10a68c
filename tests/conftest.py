# tests/conftest.py

import pytest

from Blockwright.config import Settings
from Blockwright.metrics import reset_counters
from Blockwright.world import InProcessWorld


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_counters()
    yield
    reset_counters()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        owner_username="Owner",
        planner_step_delay_ms=200,
        chat_action_delay_ms=150,
        llm_api_url="http://127.0.0.1:4891/v1",
        logging_file="NONE",
    )


@pytest.fixture
def world() -> InProcessWorld:
    return InProcessWorld(
        position=(0, 64, 0),
        blocks={
            (2, 64, 1): "oak_log",
            (3, 64, 0): "stone",
            (1, 63, 1): "dirt",
        },
        players={"Steve": (4.0, 64.0, 4.0), "Owner": (-3.0, 64.0, 2.0)},
        inventory={"oak_log": 3, "cobblestone": 5},
        seed=7,
    )


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()
