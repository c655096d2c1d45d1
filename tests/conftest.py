import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import structlog

from llm_game_gen.cache import ArtifactCache


GAME_HTML = "<!DOCTYPE html>\n<html><head><title>Iron Tide</title></head><body><canvas></canvas></body></html>"

SAMPLE_DESIGN = {
    "metadata": {"project_name": "Iron Tide"},
    "inputs": {"genre": "RTS"},
    "game_design_spec": {
        "factions": [{"name": "Northern Pact"}, {"name": "Ember Clans"}],
        "economy": {"resources": [{"name": "Steel"}, {"name": "Oil"}]},
    },
    "balancing": {
        "units": [{"unit_name": f"Unit {i}"} for i in range(8)],
    },
}


class FakeClock:
    """Strictly increasing UTC timestamps, one second apart."""

    def __init__(self):
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


class FakeBackend:
    """Backend double: only models in ``available`` pass their probe."""

    def __init__(self, available=(), output=GAME_HTML, complete_delay=0.0, probe_delays=None):
        self.available = set(available)
        self.output = output
        self.complete_delay = complete_delay
        self.probe_delays = probe_delays or {}
        self.probed = []
        self.completed = []
        self.prompts = []

    async def probe(self, model):
        self.probed.append(model)
        if model in self.probe_delays:
            await asyncio.sleep(self.probe_delays[model])
        if model not in self.available:
            raise RuntimeError(f"{model} not available")

    async def complete(self, model, prompt):
        self.completed.append(model)
        self.prompts.append(prompt)
        if self.complete_delay:
            await asyncio.sleep(self.complete_delay)
        if isinstance(self.output, Exception):
            raise self.output
        return self.output


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(tmp_path, clock):
    return ArtifactCache(tmp_path / "games", clock=clock)
