"""
Inference

    from callflow_core.inference import InferenceOrchestrator, TurnInput

    result = await orchestrator.process_turn(
        TurnInput(session_id="contact-123", trigger_input="+61299990000")
    )
"""

from .orchestrator import InferenceOrchestrator, TurnInput, TurnResult
from .state_ops import increment_value, load_state, parse_indexed_pairs, update_state
from .system import OperatingHours, SystemAttributeProvider, TimeOfDay, time_of_day

__all__ = [
    "InferenceOrchestrator",
    "TurnInput",
    "TurnResult",
    "increment_value",
    "load_state",
    "parse_indexed_pairs",
    "update_state",
    "OperatingHours",
    "SystemAttributeProvider",
    "TimeOfDay",
    "time_of_day",
]
