"""
Step Presentation Contract

The EffectManager never renders anything. For every step that becomes
active it builds a StepRequest and hands it to the attached presenter. The
presenter answers through the request's write-only callbacks:

    request.on_select(value)   exactly once, with the chosen id
                               (or the full ordered id list for orderDiscard)
    request.on_back()          only offered where the step can rewind;
                               None otherwise

Callbacks are bound to the flow that produced the request. Answers arriving
after that flow was superseded are dropped by the manager.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from models.enums import EffectKind, StepId

logger = logging.getLogger(__name__)


class _Back:
    """Scripted answer meaning "go back one step"."""

    def __repr__(self) -> str:
        return "BACK"


BACK = _Back()


@dataclass(frozen=True)
class StepRequest:
    """Everything a picker widget needs for one step."""

    flow_id: int
    kind: EffectKind
    step: StepId
    prompt: str
    candidates: list
    on_select: Callable[[Any], None]
    on_back: Callable[[], None] | None = None
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def can_go_back(self) -> bool:
        return self.on_back is not None

    @property
    def is_empty(self) -> bool:
        """Nothing selectable; the widget shows an empty state."""
        return not self.candidates


class StepPresenter(Protocol):
    """Capability implemented by picker widgets."""

    def present(self, request: StepRequest) -> None: ...


class ScriptedPresenter:
    """
    Answers step requests from a fixed script.

    Used for headless runs and tests. Each scripted answer is either a value
    passed to on_select or BACK.

    Usage:
        presenter = ScriptedPresenter([2, BACK, 2, 200, 5])
        manager = EffectManager(snapshot, submitter, presenter=presenter)
    """

    def __init__(self, answers: Iterable[Any] = ()):
        self._answers: deque[Any] = deque(answers)
        self.requests: list[StepRequest] = []

    def script(self, *answers: Any) -> None:
        """Append answers to the script."""
        self._answers.extend(answers)

    @property
    def remaining(self) -> int:
        return len(self._answers)

    def present(self, request: StepRequest) -> None:
        self.requests.append(request)
        if not self._answers:
            logger.debug(f"No scripted answer for {request.step.value}, leaving step open")
            return

        answer = self._answers.popleft()
        if answer is BACK:
            if request.on_back is None:
                logger.warning(f"Scripted BACK at {request.step.value} but step has no back")
                return
            request.on_back()
        else:
            request.on_select(answer)


class AsyncPresenter:
    """
    Adapts an async question function to the presenter contract.

    `ask(request)` returns the chosen value, or BACK. Only the latest request
    is kept alive: a new request cancels the pending question.
    """

    def __init__(self, ask: Callable[[StepRequest], Awaitable[Any]]):
        self._ask = ask
        self._pending: asyncio.Task | None = None

    def present(self, request: StepRequest) -> None:
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._resolve(request))

    def cancel(self) -> None:
        pending = self._pending
        # The pending task itself may be presenting the next step
        if pending and not pending.done() and pending is not asyncio.current_task():
            pending.cancel()
        self._pending = None

    async def _resolve(self, request: StepRequest) -> None:
        try:
            answer = await self._ask(request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Presenter failed for {request.step.value}: {e}", exc_info=True)
            return

        if answer is BACK:
            if request.on_back is not None:
                request.on_back()
            return
        request.on_select(answer)
