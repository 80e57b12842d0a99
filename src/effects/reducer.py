"""
Flow Reducer

Pure functions (FlowState, event) -> Transition. No I/O, no logging of
outcomes, no clocks: the EffectManager applies the returned state, logs, and
executes any SubmitCommand.

States:
    IDLE ──notification──> AWAITING_STEP(initial) ──selection──> AWAITING_STEP(next)
                                 ▲     │                               │
                                 └back─┘                        last step answered
                                                                       ▼
    IDLE <──────────────── reset (policy-dependent) ─────────── SUBMITTING
"""

from dataclasses import dataclass, replace
from typing import Any

from effects.errors import UnknownEffectKindError
from effects.transitions import SUBMIT, build_response, get_definition, step_field
from models.effect_notification import EffectNotification
from models.enums import Direction, EffectKind, FlowPhase, StepId
from models.flow_state import FlowState, Selections
from models.game_snapshot import EntityId


@dataclass(frozen=True)
class SubmitCommand:
    """Outbound request produced when a flow completes."""

    flow_id: int
    kind: EffectKind
    fields: dict[str, Any]


@dataclass(frozen=True)
class Transition:
    """Result of reducing one event."""

    state: FlowState
    submit: SubmitCommand | None = None
    ignored: str | None = None  # Why the event had no effect, if it had none
    invalid_input: bool = False  # Ignored because the answer itself was unusable

    @property
    def was_ignored(self) -> bool:
        return self.ignored is not None


def reset(state: FlowState) -> FlowState:
    """Back to IDLE, keeping the flow counter."""
    return FlowState.idle(state.flow_id)


def start_flow(state: FlowState, notification: EffectNotification) -> Transition:
    """
    Replace whatever flow is active with a new one for `notification`.

    Raises:
        UnknownEffectKindError: `event` has no transition-table entry
    """
    kind = EffectKind.from_event(notification.event)
    if kind is None:
        raise UnknownEffectKindError(notification.event)

    definition = get_definition(kind)
    new_state = FlowState(
        flow_id=state.flow_id + 1,
        phase=FlowPhase.AWAITING_STEP,
        kind=kind,
        step=definition.initial_step,
        selections=Selections(),
        back_requested=False,
        payload=notification.payload,
    )
    return Transition(new_state)


def _coerce(step: StepId, value: Any) -> Any:
    """Normalize a widget answer for storage; raises ValueError if unusable."""
    if step == StepId.ORDER_DISCARD:
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
            raise ValueError(f"orderDiscard expects an ordered list of card ids, got {value!r}")
        return tuple(value)
    if step == StepId.SELECT_DIRECTION:
        return Direction(value)
    return value


def apply_selection(
    state: FlowState,
    value: Any,
    acting_player_id: EntityId | None,
) -> Transition:
    """
    Store the answer for the active step and advance.

    Advances for as long as the forward guard of the reached step is already
    satisfied, so a stale downstream selection would skip a step; back
    transitions clear those selections to prevent it.
    """
    if state.phase != FlowPhase.AWAITING_STEP or state.kind is None or state.step is None:
        return Transition(state, ignored=f"no step awaiting input ({state.phase.value})")
    if value is None:
        return Transition(state, ignored="empty selection")

    try:
        stored = _coerce(state.step, value)
    except ValueError as e:
        return Transition(state, ignored=str(e), invalid_input=True)

    definition = get_definition(state.kind)
    selections = state.selections.with_value(step_field(state.step), stored)
    step = state.step

    while True:
        nxt = definition.advance(step, selections)
        if nxt is None:
            return Transition(replace(state, step=step, selections=selections, back_requested=False))
        if nxt == SUBMIT:
            fields = build_response(definition, selections, acting_player_id)
            submitting = replace(
                state,
                phase=FlowPhase.SUBMITTING,
                step=step,
                selections=selections,
                back_requested=False,
            )
            return Transition(
                submitting,
                submit=SubmitCommand(flow_id=state.flow_id, kind=state.kind, fields=fields),
            )
        step = nxt


def apply_back(state: FlowState) -> Transition:
    """Rewind one step where the active effect allows it; otherwise ignore."""
    if state.phase != FlowPhase.AWAITING_STEP or state.kind is None:
        return Transition(state, ignored=f"no step awaiting input ({state.phase.value})")

    back = get_definition(state.kind).retreat(state.step)
    if back is None:
        return Transition(
            state,
            ignored=f"no back transition from {state.step.value} in {state.kind.value}",
        )

    return Transition(
        replace(
            state,
            step=back.previous_step,
            selections=state.selections.cleared(*back.cleared_fields),
            back_requested=False,
        )
    )
