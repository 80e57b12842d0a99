"""
Shared test fixtures for pytest
"""

import asyncio

import pytest

from effects.scenario_runner import SAMPLE_PAYLOADS, SAMPLE_SNAPSHOT
from effects.submitter import ActionSubmitter, SubmissionResult
from models import GameSnapshot
from services.event_bus import EventBus, Events


class RecordingSubmitter(ActionSubmitter):
    """
    ActionSubmitter that records calls instead of posting.

    `outcome` decides the result of every submit(): True (2xx), False (HTTP
    500) or an exception instance, which is raised from submit().
    """

    def __init__(self, outcome=True, **kwargs):
        super().__init__(**kwargs)
        self.outcome = outcome
        self.calls: list[tuple] = []

    async def submit(self, kind, fields):
        self.calls.append((kind, dict(fields)))
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        url = self.resolve_endpoint(kind)
        if self.outcome:
            return SubmissionResult(kind=kind, success=True, url=url, body=dict(fields), status=200)
        return SubmissionResult(
            kind=kind, success=False, url=url, body=dict(fields), status=500, error="HTTP 500"
        )


@pytest.fixture
def snapshot() -> GameSnapshot:
    """Four-player sample game, viewer is player 1"""
    return SAMPLE_SNAPSHOT


@pytest.fixture
def ashes_payload():
    """Top five discard cards attached to lookIntoTheAshes"""
    return SAMPLE_PAYLOADS["lookIntoTheAshes"]


@pytest.fixture
def bus():
    """Isolated event bus that records every lifecycle event"""
    return EventBus()


@pytest.fixture
def published(bus):
    """(event name, data) tuples published on `bus`, in order"""
    received = []

    def record(event_dict):
        received.append((event_dict["name"], event_dict["data"]))

    for event in Events:
        bus.subscribe(event, record, weak=False)
    return received


@pytest.fixture
def submitter():
    """Submitter whose POSTs all succeed"""
    return RecordingSubmitter(game_id=42)


@pytest.fixture
def failing_submitter():
    """Submitter whose POSTs all come back HTTP 500"""
    return RecordingSubmitter(outcome=False, game_id=42)


class GatedSubmitter(RecordingSubmitter):
    """Holds every POST until `gate` is set."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.gate = asyncio.Event()
        self.started: list = []

    async def submit(self, kind, fields):
        self.started.append(kind)
        await self.gate.wait()
        return await super().submit(kind, fields)


@pytest.fixture
def make_submitter():
    """Factory for RecordingSubmitter with custom outcome/overrides"""

    def factory(outcome=True, **kwargs):
        kwargs.setdefault("game_id", 42)
        return RecordingSubmitter(outcome=outcome, **kwargs)

    return factory


@pytest.fixture
def gated_submitter():
    """Submitter whose POSTs stay pending until `gate.set()`"""
    return GatedSubmitter(game_id=42)
