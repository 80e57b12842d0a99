"""
Flow state - immutable value owned by the EffectManager.

One FlowState describes the single in-progress resolution of an effect
notification. Every change produces a new value via dataclasses.replace();
nothing mutates a FlowState in place.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any

from models.enums import Direction, EffectKind, FlowPhase, StepId
from models.game_snapshot import EntityId


@dataclass(frozen=True)
class Selections:
    """Answers collected so far in the active flow."""

    player1: EntityId | None = None
    player2: EntityId | None = None
    secret: EntityId | None = None
    set: EntityId | None = None
    card: EntityId | None = None
    ordered_card_ids: tuple[EntityId, ...] | None = None
    direction: Direction | None = None

    def with_value(self, name: str, value: Any) -> "Selections":
        """Return a copy with one field set."""
        return replace(self, **{name: value})

    def cleared(self, *names: str) -> "Selections":
        """Return a copy with the given fields reset to None."""
        return replace(self, **{name: None for name in names})

    def to_dict(self) -> dict:
        """Serialize for logging/debugging."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Direction):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            result[f.name] = value
        return result


@dataclass(frozen=True)
class FlowState:
    """
    Orchestrator state.

    Invariant: `step` is None if and only if `kind` is None.
    `flow_id` increases with every accepted notification; widget callbacks and
    post-submit resets carry it so a superseded flow can never touch a newer one.
    """

    flow_id: int = 0
    phase: FlowPhase = FlowPhase.IDLE
    kind: EffectKind | None = None
    step: StepId | None = None
    selections: Selections = field(default_factory=Selections)
    back_requested: bool = False
    payload: Any = None

    @classmethod
    def idle(cls, flow_id: int = 0) -> "FlowState":
        """Empty state, keeping the last flow id."""
        return cls(flow_id=flow_id)

    @property
    def is_idle(self) -> bool:
        return self.phase == FlowPhase.IDLE

    @property
    def is_active(self) -> bool:
        """True while a flow is awaiting input or submitting."""
        return self.phase != FlowPhase.IDLE

    def is_consistent(self) -> bool:
        """Check the step/kind invariant."""
        return (self.step is None) == (self.kind is None)

    def to_dict(self) -> dict:
        """Serialize for logging/debugging."""
        return {
            "flow_id": self.flow_id,
            "phase": self.phase.value,
            "kind": self.kind.value if self.kind else None,
            "step": self.step.value if self.step else None,
            "selections": self.selections.to_dict(),
            "back_requested": self.back_requested,
        }
