"""
Tests for the flow reducer (pure state transitions)
"""

import pytest

from effects import reducer
from effects.errors import UnknownEffectKindError
from models import (
    Direction,
    EffectKind,
    EffectNotification,
    FlowPhase,
    FlowState,
    StepId,
)

ACTOR = 1


def started(event, payload=None, flow_id=0):
    transition = reducer.start_flow(
        FlowState.idle(flow_id), EffectNotification(event=event, payload=payload)
    )
    return transition.state


def answer(state, *values):
    """Apply several selections in a row, returning the last transition."""
    transition = None
    for value in values:
        transition = reducer.apply_selection(state, value, ACTOR)
        state = transition.state
    return transition


class TestStartFlow:
    def test_starts_at_initial_step(self):
        state = started("stealSet")
        assert state.phase == FlowPhase.AWAITING_STEP
        assert state.kind == EffectKind.STEAL_SET
        assert state.step == StepId.SELECT_PLAYER
        assert state.flow_id == 1

    def test_keeps_payload(self, ashes_payload):
        state = started("lookIntoTheAshes", ashes_payload)
        assert state.payload == ashes_payload

    def test_replaces_active_flow_with_clean_selections(self):
        state = answer(started("stealSet"), 2).state
        assert state.selections.player1 == 2

        replaced = reducer.start_flow(state, EffectNotification(event="hideSecret")).state
        assert replaced.kind == EffectKind.HIDE_SECRET
        assert replaced.step == StepId.SELECT_PLAYER
        assert replaced.selections.player1 is None
        assert replaced.flow_id == state.flow_id + 1

    def test_unknown_kind_raises(self):
        with pytest.raises(UnknownEffectKindError) as exc_info:
            started("castFireball")
        assert exc_info.value.event == "castFireball"


class TestApplySelection:
    def test_single_step_effect_submits(self):
        transition = answer(started("selectAnyPlayer"), 3)
        assert transition.state.phase == FlowPhase.SUBMITTING
        assert transition.submit.kind == EffectKind.SELECT_ANY_PLAYER
        assert transition.submit.fields == {"playerId": ACTOR, "selectedPlayerId": 3}

    def test_submit_carries_flow_id(self):
        transition = answer(started("selectAnyPlayer", flow_id=6), 3)
        assert transition.submit.flow_id == 7

    def test_multi_step_advances(self):
        transition = answer(started("stealSet"), 2)
        assert transition.submit is None
        assert transition.state.step == StepId.SELECT_SET

    def test_none_is_ignored(self):
        state = started("stealSet")
        transition = reducer.apply_selection(state, None, ACTOR)
        assert transition.was_ignored
        assert transition.state is state

    def test_ignored_when_idle(self):
        transition = reducer.apply_selection(FlowState.idle(), 2, ACTOR)
        assert transition.was_ignored

    def test_ignored_when_submitting(self):
        submitting = answer(started("selectAnyPlayer"), 3).state
        transition = reducer.apply_selection(submitting, 4, ACTOR)
        assert transition.was_ignored
        assert not transition.invalid_input
        assert transition.submit is None

    def test_order_discard_requires_list(self):
        state = started("delayTheMurderersEscape", {"cards": [{"id": 1}]})
        assert answer(state, 8001).invalid_input
        assert answer(state, "8001").invalid_input

    def test_order_discard_submits_full_order(self):
        state = started("delayTheMurderersEscape")
        transition = answer(state, [8003, 8001, 8002])
        assert transition.submit.fields == {"playerId": ACTOR, "cards": [8003, 8001, 8002]}

    def test_direction_accepts_string_or_enum(self):
        assert answer(started("selectDirection"), "left").submit.fields["direction"] == "left"
        assert (
            answer(started("selectDirection"), Direction.RIGHT).submit.fields["direction"]
            == "right"
        )

    def test_bad_direction_ignored(self):
        assert answer(started("selectDirection"), "up").was_ignored

    def test_empty_id_accepted(self):
        """Zero is a valid id; only None means "no answer"."""
        transition = answer(started("selectAnyPlayer"), 0)
        assert transition.submit.fields["selectedPlayerId"] == 0


class TestApplyBack:
    def test_back_clears_selections(self):
        state = answer(started("stealSet"), 2).state
        transition = reducer.apply_back(state)
        assert transition.state.step == StepId.SELECT_PLAYER
        assert transition.state.selections.player1 is None
        assert transition.state.selections.set is None

    def test_back_then_reselect_does_not_skip(self):
        """After back, answering the player again must stop at the set step."""
        state = answer(started("stealSet"), 2).state
        state = reducer.apply_back(state).state
        transition = answer(state, 3)
        assert transition.submit is None
        assert transition.state.step == StepId.SELECT_SET
        assert transition.state.selections.player1 == 3

    def test_and_then_back_from_player2_keeps_target(self):
        state = answer(started("andThenThereWasOneMore"), 2, 20).state
        assert state.step == StepId.SELECT_PLAYER_2

        back = reducer.apply_back(state).state
        assert back.step == StepId.SELECT_SECRET
        assert back.selections.player1 == 2
        assert back.selections.secret is None

    def test_back_ignored_without_back_transition(self):
        state = started("stealSet")
        transition = reducer.apply_back(state)
        assert transition.was_ignored
        assert transition.state is state

    def test_back_ignored_for_reveal_own_secret(self):
        assert reducer.apply_back(started("revealOwnSecret")).was_ignored

    def test_back_ignored_when_idle(self):
        assert reducer.apply_back(FlowState.idle()).was_ignored


class TestReset:
    def test_reset_keeps_flow_counter(self):
        state = answer(started("stealSet", flow_id=3), 2).state
        idle = reducer.reset(state)
        assert idle.is_idle
        assert idle.kind is None
        assert idle.step is None
        assert idle.flow_id == 4
