# Core engine infrastructure

from callflow_core.core.errors import CallflowError, MissingParameterError
from callflow_core.core.logging import (
    LogFormat,
    log_context,
    setup_logging,
)

__all__ = [
    "CallflowError",
    "MissingParameterError",
    "LogFormat",
    "log_context",
    "setup_logging",
]
