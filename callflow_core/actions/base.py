"""
Action Supervision Base Types

Actions are long-running integrations started by a rule. Each session holds
at most one action record, moving through:

    START -> RUN -> DONE | ERROR | TIMEOUT
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Mapping, Optional

from ..core.clock import parse_timestamp
from ..core.errors import CallflowError
from ..state.keys import StateKeys


class ActionStatus(str, Enum):
    """Action lifecycle status."""

    START = "START"
    RUN = "RUN"
    DONE = "DONE"
    ERROR = "ERROR"
    TIMEOUT = "TIMEOUT"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[ActionStatus] = frozenset({
    ActionStatus.DONE,
    ActionStatus.ERROR,
    ActionStatus.TIMEOUT,
})

# Stored status values a completion or timeout write may replace
ACTIVE_STATUS_VALUES: FrozenSet[str] = frozenset({
    ActionStatus.START.value,
    ActionStatus.RUN.value,
})

TIMEOUT_CAUSE = "The request timed out"


@dataclass
class ActionRecord:
    """The action fields of a session."""

    status: Optional[ActionStatus] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    error_cause: Optional[str] = None
    action_ref: Optional[str] = None
    timeout_seconds: Optional[float] = None
    output_key: Optional[str] = None

    @classmethod
    def from_state(cls, state: Mapping[str, Any]) -> "ActionRecord":
        status = state.get(StateKeys.ACTION_STATUS)
        started = state.get(StateKeys.ACTION_START)
        ended = state.get(StateKeys.ACTION_END)
        timeout = state.get(StateKeys.ACTION_TIMEOUT)

        return cls(
            status=ActionStatus(status) if status else None,
            started_at=parse_timestamp(started) if started else None,
            ended_at=parse_timestamp(ended) if ended else None,
            error_cause=state.get(StateKeys.ACTION_ERROR_CAUSE),
            action_ref=state.get(StateKeys.ACTION_REF),
            timeout_seconds=float(timeout) if timeout not in (None, "") else None,
            output_key=state.get(StateKeys.ACTION_OUTPUT_KEY),
        )

    @property
    def is_active(self) -> bool:
        return self.status is not None and not self.status.is_terminal


# =============================================================================
# Exceptions
# =============================================================================


class ActionError(CallflowError):
    """Base exception for action supervision errors."""
    pass


class ActionDispatchError(ActionError):
    """An action could not be handed to its runner."""
    pass


__all__ = [
    "ActionStatus",
    "TERMINAL_STATUSES",
    "ACTIVE_STATUS_VALUES",
    "TIMEOUT_CAUSE",
    "ActionRecord",
    "ActionError",
    "ActionDispatchError",
]
