"""
Action Supervision

    from callflow_core.actions import ActionSupervisor, LocalActionRunner

    supervisor = ActionSupervisor(store, LocalActionRunner())
    await supervisor.start("contact-123")
    check = await supervisor.check_timeout("contact-123")
"""

from .base import (
    ACTIVE_STATUS_VALUES,
    TERMINAL_STATUSES,
    TIMEOUT_CAUSE,
    ActionDispatchError,
    ActionError,
    ActionRecord,
    ActionStatus,
)
from .runner import ActionHandler, ActionRunner, HttpActionRunner, LocalActionRunner
from .supervisor import ActionSupervisor, TimeoutCheck

__all__ = [
    "ACTIVE_STATUS_VALUES",
    "TERMINAL_STATUSES",
    "TIMEOUT_CAUSE",
    "ActionDispatchError",
    "ActionError",
    "ActionRecord",
    "ActionStatus",
    "ActionHandler",
    "ActionRunner",
    "HttpActionRunner",
    "LocalActionRunner",
    "ActionSupervisor",
    "TimeoutCheck",
]
