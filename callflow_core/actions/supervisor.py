"""
Action Supervisor

Drives the action record of a session:

- start():          validates the action, records START and dispatches it
- mark_running():   the action has begun work
- complete():       the action finished, storing its output
- fail():           the action failed with a cause
- check_timeout():  forces TIMEOUT once the configured timeout has elapsed

Completion, failure and timeout writes are conditional on the stored status
still being START or RUN. When a completion and a timeout race, whichever
lands first wins and the other is rejected.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from ..core.clock import format_timestamp, utc_now
from ..core.errors import MissingParameterError
from ..state.base import StateStore
from ..state.keys import StateKeys
from ..state.session import SessionState
from .base import (
    ACTIVE_STATUS_VALUES,
    TIMEOUT_CAUSE,
    ActionDispatchError,
    ActionRecord,
    ActionStatus,
)
from .runner import ActionRunner

logger = structlog.get_logger(__name__)


ActionWork = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass
class TimeoutCheck:
    """Result of a timeout check."""

    timed_out: bool
    status: Optional[ActionStatus]
    overdue_seconds: float = 0.0
    state: Dict[str, str] = field(default_factory=dict)


class ActionSupervisor:
    """Supervises the action lifecycle of sessions."""

    def __init__(
        self,
        store: StateStore,
        runner: ActionRunner,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.runner = runner
        self._clock = clock

    async def start(self, session_id: str) -> ActionStatus:
        """
        Record START and dispatch the session's current action.

        Raises:
            MissingParameterError: If the action reference or timeout is missing
        """
        state = await self.store.load(session_id)
        action_ref = _require(state, StateKeys.ACTION_REF)
        _require(state, StateKeys.ACTION_TIMEOUT)

        await self.store.save_diff(session_id, {
            StateKeys.ACTION_STATUS: ActionStatus.START.value,
            StateKeys.ACTION_START: self._timestamp(),
            StateKeys.ACTION_END: None,
            StateKeys.ACTION_ERROR_CAUSE: None,
        })

        try:
            await self.runner.dispatch(action_ref, {"ContactId": session_id})
        except ActionDispatchError as e:
            logger.error(
                "action_dispatch_failed",
                session_id=session_id,
                action_ref=action_ref,
                error=str(e),
            )
            await self.fail(session_id, str(e))
            return ActionStatus.ERROR

        logger.info("action_started", session_id=session_id, action_ref=action_ref)
        return ActionStatus.START

    async def mark_running(self, session_id: str) -> bool:
        """Record RUN unless the action already reached a terminal status."""
        return await self._transition(session_id, ActionStatus.RUN, {
            StateKeys.ACTION_STATUS: ActionStatus.RUN.value,
        })

    async def complete(self, session_id: str, output: Any) -> bool:
        """
        Record DONE and store the action output under the configured key.

        Returns:
            False if the action had already finished, failed or timed out

        Raises:
            MissingParameterError: If no output key is configured
        """
        state = await self.store.load(session_id)
        output_key = _require(state, StateKeys.ACTION_OUTPUT_KEY)

        return await self._transition(session_id, ActionStatus.DONE, {
            output_key: output,
            StateKeys.ACTION_STATUS: ActionStatus.DONE.value,
            StateKeys.ACTION_ERROR_CAUSE: None,
            StateKeys.ACTION_END: self._timestamp(),
        })

    async def fail(self, session_id: str, cause: str) -> bool:
        """Record ERROR with a cause, clearing any stored output."""
        state = await self.store.load(session_id)

        diff: Dict[str, Any] = {
            StateKeys.ACTION_STATUS: ActionStatus.ERROR.value,
            StateKeys.ACTION_ERROR_CAUSE: cause,
            StateKeys.ACTION_END: self._timestamp(),
        }
        output_key = state.get(StateKeys.ACTION_OUTPUT_KEY)
        if output_key:
            diff[output_key] = None

        return await self._transition(session_id, ActionStatus.ERROR, diff)

    async def execute(self, session_id: str, work: ActionWork) -> ActionStatus:
        """
        Run an in-process action through the completion path.

        `work` receives the session state and returns the action output.
        A failure is recorded as ERROR and re-raised.
        """
        await self.mark_running(session_id)
        state = await self.store.load(session_id)

        try:
            output = await work(state)
        except Exception as e:
            logger.error("action_failed", session_id=session_id, error=str(e))
            await self.fail(session_id, str(e))
            raise

        if await self.complete(session_id, output):
            return ActionStatus.DONE

        record = ActionRecord.from_state(await self.store.load(session_id))
        return record.status or ActionStatus.DONE

    async def check_timeout(
        self,
        session_id: str,
        now: Optional[datetime] = None,
    ) -> TimeoutCheck:
        """
        Force TIMEOUT if the action has outlived its timeout.

        Raises:
            MissingParameterError: If the start time or timeout is missing
        """
        state = await self.store.load(session_id)
        _require(state, StateKeys.ACTION_START)
        _require(state, StateKeys.ACTION_TIMEOUT)

        record = ActionRecord.from_state(state)
        now = now or self._clock()
        deadline = record.started_at + timedelta(seconds=record.timeout_seconds)
        overdue = (now - deadline).total_seconds()

        if overdue <= 0:
            logger.debug("action_within_timeout", session_id=session_id, remaining=-overdue)
            return TimeoutCheck(
                timed_out=False,
                status=record.status,
                state=SessionState(session_id, state).string_projection(),
            )

        if not record.is_active:
            return TimeoutCheck(
                timed_out=False,
                status=record.status,
                overdue_seconds=overdue,
                state=SessionState(session_id, state).string_projection(),
            )

        logger.error("action_timeout_detected", session_id=session_id, overdue=overdue)
        written = await self._transition(session_id, ActionStatus.TIMEOUT, {
            StateKeys.ACTION_STATUS: ActionStatus.TIMEOUT.value,
            StateKeys.ACTION_ERROR_CAUSE: TIMEOUT_CAUSE,
            StateKeys.ACTION_END: format_timestamp(now),
        })

        state = await self.store.load(session_id)
        return TimeoutCheck(
            timed_out=written,
            status=ActionRecord.from_state(state).status,
            overdue_seconds=overdue,
            state=SessionState(session_id, state).string_projection(),
        )

    async def _transition(
        self,
        session_id: str,
        status: ActionStatus,
        diff: Dict[str, Any],
    ) -> bool:
        written = await self.store.save_diff_if(
            session_id,
            diff,
            guard_key=StateKeys.ACTION_STATUS,
            allowed=ACTIVE_STATUS_VALUES,
        )
        if written:
            logger.info("action_status_changed", session_id=session_id, status=status.value)
        else:
            logger.warning("action_status_change_rejected", session_id=session_id, status=status.value)
        return written

    def _timestamp(self) -> str:
        return format_timestamp(self._clock())


def _require(state: Dict[str, Any], key: str) -> Any:
    value = state.get(key)
    if value is None or value == "":
        raise MissingParameterError(key)
    return value
