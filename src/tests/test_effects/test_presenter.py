"""
Tests for the step presentation contract
"""

import asyncio
from unittest.mock import Mock

import pytest

from effects.manager import EffectManager
from effects.presenter import BACK, AsyncPresenter, ScriptedPresenter, StepRequest
from models import EffectKind, EffectNotification, StepId


def make_request(on_back=None, candidates=None):
    return StepRequest(
        flow_id=1,
        kind=EffectKind.STEAL_SET,
        step=StepId.SELECT_SET,
        prompt="Select one set to steal",
        candidates=candidates if candidates is not None else [1],
        on_select=Mock(),
        on_back=on_back,
    )


async def settle(rounds: int = 20):
    """Let pending presenter tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class TestStepRequest:
    def test_can_go_back_follows_on_back(self):
        assert make_request(on_back=Mock()).can_go_back
        assert not make_request().can_go_back

    def test_is_empty(self):
        assert make_request(candidates=[]).is_empty
        assert not make_request().is_empty


class TestScriptedPresenter:
    def test_answers_in_order(self):
        presenter = ScriptedPresenter([5])
        request = make_request()

        presenter.present(request)

        request.on_select.assert_called_once_with(5)
        assert presenter.requests == [request]
        assert presenter.remaining == 0

    def test_back_answer(self):
        on_back = Mock()
        presenter = ScriptedPresenter([BACK])

        presenter.present(make_request(on_back=on_back))

        on_back.assert_called_once()

    def test_back_without_back_transition_is_skipped(self):
        presenter = ScriptedPresenter([BACK])
        request = make_request()

        presenter.present(request)

        request.on_select.assert_not_called()

    def test_no_answer_leaves_step_open(self):
        presenter = ScriptedPresenter()
        request = make_request()

        presenter.present(request)

        request.on_select.assert_not_called()
        assert presenter.requests == [request]

    def test_script_appends(self):
        presenter = ScriptedPresenter([1])
        presenter.script(2, 3)
        assert presenter.remaining == 3


class TestAsyncPresenter:
    @pytest.mark.asyncio
    async def test_answer_reaches_on_select(self):
        async def ask(request):
            return 202

        presenter = AsyncPresenter(ask)
        request = make_request()

        presenter.present(request)
        await settle()

        request.on_select.assert_called_once_with(202)

    @pytest.mark.asyncio
    async def test_back_answer(self):
        async def ask(request):
            return BACK

        on_back = Mock()
        presenter = AsyncPresenter(ask)
        request = make_request(on_back=on_back)

        presenter.present(request)
        await settle()

        on_back.assert_called_once()
        request.on_select.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_request_cancels_pending_question(self):
        never = asyncio.Event()
        asked = []

        async def ask(request):
            asked.append(request)
            await never.wait()

        presenter = AsyncPresenter(ask)
        first = make_request()
        presenter.present(first)
        await settle(2)
        pending = presenter._pending

        presenter.present(make_request())
        await settle(2)

        assert pending.cancelled()
        first.on_select.assert_not_called()
        presenter.cancel()

    @pytest.mark.asyncio
    async def test_ask_failure_is_contained(self):
        async def ask(request):
            raise RuntimeError("console closed")

        presenter = AsyncPresenter(ask)
        request = make_request()

        presenter.present(request)
        await settle()

        request.on_select.assert_not_called()

    @pytest.mark.asyncio
    async def test_drives_a_whole_flow(self, snapshot, submitter, bus):
        answers = {StepId.SELECT_PLAYER: 2, StepId.SELECT_SET: 202}

        async def ask(request):
            return answers[request.step]

        manager = EffectManager(snapshot, submitter, presenter=AsyncPresenter(ask), bus=bus)
        manager.on_notification(EffectNotification(event="stealSet"))
        await settle()
        await manager.wait_for_submissions()

        assert submitter.calls == [
            (EffectKind.STEAL_SET, {"playerId": 1, "stolenPlayerId": 2, "setId": 202})
        ]
        assert manager.state.is_idle
