"""
Enumerations for effect kinds, flow steps and orchestrator states
"""

from enum import Enum


class EffectKind(str, Enum):
    """Effect requested by the server (value is the wire event name)"""

    SELECT_ANY_PLAYER = "selectAnyPlayer"
    STEAL_SET = "stealSet"
    AND_THEN_THERE_WAS_ONE_MORE = "andThenThereWasOneMore"
    REVEAL_SECRET = "revealSecret"
    REVEAL_OWN_SECRET = "revealOwnSecret"
    HIDE_SECRET = "hideSecret"
    LOOK_INTO_THE_ASHES = "lookIntoTheAshes"
    DELAY_THE_MURDERERS_ESCAPE = "delayTheMurderersEscape"
    SELECT_OWN_CARD = "selectOwnCard"
    SELECT_DIRECTION = "selectDirection"
    SELECT_SET = "selectSet"

    @classmethod
    def from_event(cls, event: str | None) -> "EffectKind | None":
        """Map a wire event name to a kind, None if unknown."""
        try:
            return cls(event)
        except ValueError:
            return None


class StepId(str, Enum):
    """One "ask the user for X" stage of a flow"""

    SELECT_PLAYER = "selectPlayer"
    SELECT_PLAYER_2 = "selectPlayer2"
    SELECT_SECRET = "selectSecret"
    SELECT_SET = "selectSet"
    SELECT_CARD = "selectCard"
    ORDER_DISCARD = "orderDiscard"
    SELECT_DIRECTION = "selectDirection"


class Direction(str, Enum):
    """Card trade direction"""

    LEFT = "left"
    RIGHT = "right"


class FlowPhase(str, Enum):
    """Orchestrator state"""

    IDLE = "idle"
    AWAITING_STEP = "awaiting_step"
    SUBMITTING = "submitting"


class ResetPolicy(str, Enum):
    """When the flow returns to IDLE relative to the outbound POST"""

    BEFORE_SUBMIT = "before_submit"  # Optimistic: reset, then POST detached
    AFTER_SUBMIT = "after_submit"  # Stay SUBMITTING until the POST settles
