"""
Headless Scenario Runner

Drives one effect flow end to end without a UI: replays the baseline
publicData/privateData frames, emits the effect notification, and answers
every step from a script.

Usage:
    result = await run_scenario("stealSet", [2, 202], submitter)
    print(result.submissions)

The sample game has four players; player 1 is the viewer.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from effects.manager import EffectManager
from effects.presenter import ScriptedPresenter, StepRequest
from effects.router import SnapshotRouter
from effects.submitter import ActionSubmitter, SubmissionResult
from models.enums import ResetPolicy
from models.flow_state import FlowState
from models.game_snapshot import EntityId, GameSnapshot

logger = logging.getLogger(__name__)

SAMPLE_ACTING_PLAYER_ID = 1

SAMPLE_PUBLIC_DATA: dict[str, Any] = {
    "players": [
        {
            "id": 1,
            "name": "You",
            "turnOrder": 1,
            "secrets": [
                {"id": 10, "revealed": True, "name": "You are the murderer"},
                {"id": 11, "revealed": False, "name": "You are the murderer"},
            ],
            "sets": [
                {
                    "setId": 201,
                    "setName": "Hercule Poirot",
                    "cards": [
                        {"id": 3001, "name": "Ariadne Oliver"},
                        {"id": 3002, "name": "Ariadne Oliver"},
                        {"id": 3003, "name": "Ariadne Oliver"},
                    ],
                }
            ],
        },
        {
            "id": 2,
            "name": "Alice",
            "turnOrder": 2,
            "secrets": [
                {"id": 20, "revealed": True, "name": "You are the murderer"},
                {"id": 21, "revealed": False, "name": None},
            ],
            "sets": [
                {
                    "setId": 202,
                    "setName": "Miss Marple",
                    "cards": [
                        {"id": 3101, "name": "Ariadne Oliver"},
                        {"id": 3102, "name": "Ariadne Oliver"},
                        {"id": 3103, "name": "Ariadne Oliver"},
                    ],
                }
            ],
        },
        {
            "id": 3,
            "name": "Bob",
            "turnOrder": 3,
            "secrets": [
                {"id": 30, "revealed": True, "name": "Prankster"},
                {"id": 31, "revealed": False, "name": None},
            ],
            "sets": [
                {
                    "setId": 203,
                    "setName": "Hercule Poirot",
                    "cards": [
                        {"id": 3201, "name": "Ariadne Oliver"},
                        {"id": 3202, "name": "Ariadne Oliver"},
                        {"id": 3203, "name": "Ariadne Oliver"},
                    ],
                }
            ],
        },
        {
            "id": 4,
            "name": "Eve",
            "turnOrder": 4,
            "secrets": [
                {"id": 40, "revealed": True, "name": "Prankster"},
                {"id": 41, "revealed": False, "name": None},
            ],
            "sets": [],
        },
    ],
}

SAMPLE_PRIVATE_DATA: dict[str, Any] = {
    "cards": [
        {"id": 401, "name": "Hercule Poirot", "type": "detective"},
        {"id": 402, "name": "Hercule Poirot", "type": "event"},
        {"id": 403, "name": "Hercule Poirot", "type": "devious"},
        {"id": 404, "name": "Hercule Poirot", "type": "event"},
    ],
    "secrets": [
        {"id": 510, "revealed": False, "name": "You are the murderer"},
        {"id": 511, "revealed": True, "name": "You are the murderer"},
        {"id": 512, "revealed": False, "name": None},
    ],
}

SAMPLE_SNAPSHOT = GameSnapshot.from_public_private(
    SAMPLE_PUBLIC_DATA, SAMPLE_PRIVATE_DATA, SAMPLE_ACTING_PLAYER_ID
)

_DISCARD_TOP = [{"id": 8000 + i, "name": "Hercule Poirot"} for i in range(1, 6)]

SAMPLE_PAYLOADS: dict[str, Any] = {
    "lookIntoTheAshes": {"cards": _DISCARD_TOP},
    "delayTheMurderersEscape": {"cards": _DISCARD_TOP},
}


@dataclass
class ScenarioResult:
    """What happened during one scripted run."""

    event: str
    requests: list[StepRequest] = field(default_factory=list)
    submissions: list[SubmissionResult] = field(default_factory=list)
    final_state: FlowState | None = None
    unanswered: int = 0  # Scripted answers left over

    @property
    def steps(self) -> list[str]:
        return [request.step.value for request in self.requests]

    def to_dict(self) -> dict:
        return {
            "event": self.event,
            "steps": self.steps,
            "submissions": [s.to_dict() for s in self.submissions],
            "final_state": self.final_state.to_dict() if self.final_state else None,
            "unanswered": self.unanswered,
        }


async def run_scenario(
    event: str,
    answers: Iterable[Any],
    submitter: ActionSubmitter | None = None,
    public_data: dict[str, Any] | None = None,
    private_data: dict[str, Any] | None = None,
    acting_player_id: EntityId | None = SAMPLE_ACTING_PLAYER_ID,
    payload: Any = None,
    reset_policy: ResetPolicy = ResetPolicy.BEFORE_SUBMIT,
) -> ScenarioResult:
    """
    Run one effect flow against scripted answers.

    Args:
        event: Effect kind wire name (unknown names are logged and ignored)
        answers: Values for each step in order, BACK to go back
        submitter: Where the terminal POST goes (none: flow resets without POST)
        public_data / private_data: Game documents (sample game by default)
        acting_player_id: Viewer id
        payload: Notification payload (SAMPLE_PAYLOADS entry by default)
        reset_policy: Reset timing

    Returns:
        ScenarioResult with every presented request and submission
    """
    presenter = ScriptedPresenter(answers)
    manager = EffectManager(submitter=submitter, presenter=presenter, reset_policy=reset_policy)
    result = ScenarioResult(event=event)
    manager.on_submit_result = result.submissions.append

    router = SnapshotRouter(manager, acting_player_id)
    router.route({"event": "publicData", "payload": public_data or SAMPLE_PUBLIC_DATA})
    router.route({"event": "privateData", "payload": private_data or SAMPLE_PRIVATE_DATA})

    if payload is None:
        payload = SAMPLE_PAYLOADS.get(event, {})
    logger.info(f"Scenario: {event}")
    router.route({"event": event, "payload": payload})

    await manager.wait_for_submissions()

    result.requests = list(presenter.requests)
    result.final_state = manager.state
    result.unanswered = presenter.remaining
    if result.unanswered:
        logger.warning(f"Scenario {event}: {result.unanswered} scripted answer(s) unused")
    return result
