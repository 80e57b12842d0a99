"""
Effect Manager - orchestrates server-requested effects

Turns one push notification into a sequence of picker steps and, once the
last step is answered, into one POST to the action API.

State Machine:
    IDLE ──notification──> AWAITING_STEP ──last answer──> SUBMITTING ──> IDLE
      ▲                      │  ▲    │                                   │
      │                      └back┘  └─ unknown kind / new notification  │
      └──────────────────────────────────────────────────────────────────┘

Rules:
- At most one flow. A new notification always replaces the active flow,
  whatever its phase (last notification wins, no queueing).
- Unknown kinds and malformed messages are logged and never reach the network.
- Reset timing is a policy (ResetPolicy):
    BEFORE_SUBMIT  reset synchronously, POST runs detached
    AFTER_SUBMIT   stay SUBMITTING until the POST settles, then reset, unless
                   a newer notification already replaced the flow
- Every answer callback is bound to (flow_id, step). Answers for a flow or a
  step that is no longer active are dropped.

The manager is the only owner of FlowState. Presenters receive write-only
callbacks through StepRequest; collaborators observe through the event bus.
"""

import asyncio
import functools
import logging
from collections.abc import Callable
from typing import Any

from effects import reducer
from effects.candidates import adjacent_players, candidates_for_step
from effects.errors import MalformedNotificationError, UnknownEffectKindError
from effects.presenter import StepPresenter, StepRequest
from effects.reducer import SubmitCommand, Transition
from effects.submitter import ActionSubmitter, SubmissionResult
from effects.transitions import get_definition
from models.effect_notification import EffectNotification, parse_notification
from models.enums import FlowPhase, ResetPolicy, StepId
from models.flow_state import FlowState
from models.game_snapshot import GameSnapshot
from services.event_bus import EventBus, Events, event_bus

logger = logging.getLogger(__name__)


class EffectManager:
    """
    Client-side effect resolution orchestrator.

    Usage:
        manager = EffectManager(snapshot, ActionSubmitter(api_url, game_id=42))
        manager.presenter = my_widgets
        push_channel.on(manager.handle_message)

        # Widgets answer through the StepRequest they were given:
        request = manager.current_request()
        request.on_select(7)
    """

    def __init__(
        self,
        snapshot: GameSnapshot | None = None,
        submitter: ActionSubmitter | None = None,
        presenter: StepPresenter | None = None,
        reset_policy: ResetPolicy = ResetPolicy.BEFORE_SUBMIT,
        bus: EventBus | None = None,
    ):
        self._state = FlowState.idle()
        self._snapshot = snapshot or GameSnapshot()
        self.submitter = submitter
        self.presenter = presenter
        self.reset_policy = ResetPolicy(reset_policy)
        self._bus = bus if bus is not None else event_bus
        self._pending: set[asyncio.Task] = set()

        # Callbacks
        self.on_state_change: Callable[[FlowState, FlowState], None] | None = None
        self.on_submit_result: Callable[[SubmissionResult], None] | None = None

        self._stats = {
            "flows_started": 0,
            "flows_superseded": 0,
            "submissions": 0,
            "submissions_failed": 0,
            "malformed_messages": 0,
            "unknown_kinds": 0,
            "stale_answers": 0,
            "ignored_events": 0,
        }

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> FlowState:
        """Current flow state (immutable value)."""
        return self._state

    @property
    def phase(self) -> FlowPhase:
        return self._state.phase

    @property
    def snapshot(self) -> GameSnapshot:
        return self._snapshot

    def update_snapshot(self, snapshot: GameSnapshot) -> None:
        """Replace the game snapshot; the active step is presented again with fresh candidates."""
        self._snapshot = snapshot
        if self._state.phase == FlowPhase.AWAITING_STEP:
            self._present()

    def get_stats(self) -> dict[str, Any]:
        stats = dict(self._stats)
        stats["pending_submissions"] = len(self._pending)
        stats["phase"] = self._state.phase.value
        return stats

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    def handle_message(self, raw: str | bytes | dict) -> None:
        """Entry point for raw push-channel frames."""
        try:
            notification = parse_notification(raw)
        except MalformedNotificationError as e:
            self._stats["malformed_messages"] += 1
            logger.warning(f"Ignoring push message: {e}")
            self._bus.publish(Events.EFFECT_IGNORED, {"reason": "malformed", "error": str(e)})
            return
        self.on_notification(notification)

    def on_notification(self, notification: EffectNotification) -> None:
        """Start a flow for `notification`, discarding any flow in progress."""
        try:
            transition = reducer.start_flow(self._state, notification)
        except UnknownEffectKindError as e:
            self._stats["unknown_kinds"] += 1
            logger.warning(f"Unknown effect event: {e.event!r}")
            self._bus.publish(Events.EFFECT_IGNORED, {"reason": "unknown_kind", "event": e.event})
            self._reset("unknown effect kind")
            return

        previous = self._state
        if previous.is_active:
            self._stats["flows_superseded"] += 1
            logger.info(
                f"Flow #{previous.flow_id} ({previous.kind.value}, {previous.phase.value}) "
                f"superseded by {notification.event}"
            )

        self._commit(transition.state)
        self._stats["flows_started"] += 1
        new = transition.state
        logger.info(f"Effect event: {new.kind.value} (flow #{new.flow_id}) -> {new.step.value}")
        self._bus.publish(
            Events.EFFECT_STARTED,
            {"flow_id": new.flow_id, "kind": new.kind.value, "step": new.step.value},
        )
        self._present()

    def select(self, value: Any, flow_id: int | None = None, step: StepId | None = None) -> None:
        """
        Answer the active step.

        Args:
            value: Chosen id, ordered id list (orderDiscard) or direction
            flow_id: Flow the answer belongs to (None = whatever is active)
            step: Step the answer belongs to (None = whatever is active)
        """
        if not self._is_current(flow_id, step, "selection"):
            return
        self._apply(reducer.apply_selection(self._state, value, self._snapshot.acting_player_id))

    def request_back(self, flow_id: int | None = None, step: StepId | None = None) -> None:
        """Go back one step where the active effect allows it."""
        if not self._is_current(flow_id, step, "back request"):
            return
        self._apply(reducer.apply_back(self._state))

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def current_request(self) -> StepRequest | None:
        """StepRequest for the step awaiting input, None when nothing is awaited."""
        state = self._state
        if state.phase != FlowPhase.AWAITING_STEP or state.kind is None or state.step is None:
            return None

        definition = get_definition(state.kind)
        candidates = candidates_for_step(definition, state.step, self._snapshot, state)

        context: dict[str, Any] = {"acting_player_id": self._snapshot.acting_player_id}
        if state.step == StepId.SELECT_SECRET:
            context["player_id"] = (
                state.selections.player1
                if state.selections.player1 is not None
                else self._snapshot.acting_player_id
            )
            context["revealed"] = definition.secret_revealed
        elif state.step == StepId.SELECT_DIRECTION:
            context["neighbours"] = adjacent_players(self._snapshot)

        on_back = None
        if definition.can_go_back(state.step):
            on_back = functools.partial(self.request_back, flow_id=state.flow_id, step=state.step)

        return StepRequest(
            flow_id=state.flow_id,
            kind=state.kind,
            step=state.step,
            prompt=definition.prompt(state.step),
            candidates=candidates,
            on_select=functools.partial(self.select, flow_id=state.flow_id, step=state.step),
            on_back=on_back,
            context=context,
        )

    def _present(self) -> None:
        request = self.current_request()
        if request is None:
            return

        if request.is_empty:
            logger.info(f"Nothing selectable for {request.kind.value}/{request.step.value}")
        self._bus.publish(
            Events.EFFECT_STEP,
            {
                "flow_id": request.flow_id,
                "kind": request.kind.value,
                "step": request.step.value,
                "prompt": request.prompt,
                "candidate_count": len(request.candidates),
                "can_go_back": request.can_go_back,
            },
        )

        if self.presenter is None:
            return
        try:
            self.presenter.present(request)
        except Exception as e:
            logger.error(f"Presenter failed for {request.step.value}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _is_current(self, flow_id: int | None, step: StepId | None, what: str) -> bool:
        state = self._state
        stale_flow = flow_id is not None and flow_id != state.flow_id
        stale_step = step is not None and step != state.step
        if stale_flow or stale_step:
            self._stats["stale_answers"] += 1
            logger.warning(
                f"Ignoring stale {what} for flow #{flow_id} step {step.value if step else '-'} "
                f"(active: #{state.flow_id} {state.step.value if state.step else '-'})"
            )
            self._bus.publish(Events.EFFECT_IGNORED, {"reason": "stale", "flow_id": flow_id})
            return False
        return True

    def _apply(self, transition: Transition) -> None:
        if transition.was_ignored:
            self._stats["ignored_events"] += 1
            if transition.invalid_input:
                step = self._state.step.value
                logger.warning(f"Ignoring answer for {step}: {transition.ignored}")
            else:
                logger.debug(f"Event ignored: {transition.ignored}")
            return

        previous_step = self._state.step
        self._commit(transition.state)

        if transition.submit is not None:
            self._dispatch_submit(transition.submit)
            return

        if transition.state.step != previous_step:
            logger.info(f"step -> {transition.state.step.value}")
        self._present()

    def _commit(self, new_state: FlowState) -> None:
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.debug(f"Flow state: {old_state.to_dict()} -> {new_state.to_dict()}")
            if self.on_state_change:
                self.on_state_change(old_state, new_state)

    def _reset(self, reason: str) -> None:
        """Return to IDLE (no-op when already idle)."""
        if self._state.is_idle and self._state.kind is None:
            return
        flow_id = self._state.flow_id
        self._commit(reducer.reset(self._state))
        logger.info(f"Reset flow #{flow_id} ({reason})")
        self._bus.publish(Events.EFFECT_RESET, {"flow_id": flow_id, "reason": reason})

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _dispatch_submit(self, command: SubmitCommand) -> None:
        if self.submitter is None:
            logger.warning(f"No submitter attached, dropping {command.kind.value} response")
            self._reset("no submitter")
            return

        if not self.submitter.has_endpoint(command.kind):
            # Configuration defect: no network attempt, no silent hang
            logger.warning(
                f"No endpoint configured for event {command.kind.value!r}. Skipping POST."
            )
            result = SubmissionResult(
                kind=command.kind,
                success=False,
                error="endpoint not configured",
                attempted=False,
            )
            self._reset("endpoint not configured")
            self._report(command, result)
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error(f"No running event loop, cannot submit {command.kind.value}")
            self._reset("no event loop")
            return

        self._stats["submissions"] += 1
        if self.reset_policy == ResetPolicy.BEFORE_SUBMIT:
            self._reset("submitted")

        task = loop.create_task(self._submit(command))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _submit(self, command: SubmitCommand) -> SubmissionResult:
        result: SubmissionResult | None = None
        try:
            result = await self.submitter.submit(command.kind, command.fields)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Submitter raised for {command.kind.value}: {e}", exc_info=True)
            result = SubmissionResult(kind=command.kind, success=False, error=repr(e))
        finally:
            if self.reset_policy == ResetPolicy.AFTER_SUBMIT:
                self._reset_after_submit(command)

        self._report(command, result)
        return result

    def _reset_after_submit(self, command: SubmitCommand) -> None:
        state = self._state
        if state.flow_id == command.flow_id and state.phase == FlowPhase.SUBMITTING:
            self._reset("submission settled")
        else:
            logger.debug(
                f"Flow #{command.flow_id} already replaced by #{state.flow_id}, not resetting"
            )

    def _report(self, command: SubmitCommand, result: SubmissionResult) -> None:
        if result.success:
            self._bus.publish(Events.EFFECT_SUBMITTED, result.to_dict())
        else:
            self._stats["submissions_failed"] += 1
            self._bus.publish(Events.EFFECT_SUBMIT_FAILED, result.to_dict())
        if self.on_submit_result:
            self.on_submit_result(result)

    async def wait_for_submissions(self) -> None:
        """Wait until every in-flight POST has settled."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
