"""
Session state operations invoked directly by the conversation flow.

update_state() takes indexed parameters:

    {"key1": "PinAttempts", "value1": "increment",
     "key2": "PostCode", "value2": "2000",
     "key3": "NextRuleSet", "value3": ""}

A value of "increment" adds one to a numeric value (or starts at 1), and a
missing, empty or "null" value deletes the key. Indices must be contiguous
starting at 1.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog

from ..state.base import StateStore
from ..state.codec import format_number, is_number, to_number

logger = structlog.get_logger(__name__)


INCREMENT = "increment"
NULL_VALUES = ("", "null")


def parse_indexed_pairs(parameters: Mapping[str, Any]) -> List[Tuple[str, Optional[str]]]:
    """Collect key/value pairs from keyN/valueN parameters."""
    pairs: List[Tuple[str, Optional[str]]] = []
    index = 1

    while f"key{index}" in parameters:
        key = parameters[f"key{index}"]
        value = parameters.get(f"value{index}")
        index += 1

        if key is None or key == "":
            continue

        if value is None or value in NULL_VALUES:
            pairs.append((key, None))
        else:
            pairs.append((key, str(value)))

    return pairs


def increment_value(existing: Any) -> str:
    if not is_number(existing):
        return "1"
    return format_number(to_number(existing) + 1)


async def load_state(store: StateStore, session_id: str) -> Dict[str, str]:
    """Load the string-valued attributes of a session."""
    session = await store.load_session(session_id)
    return session.string_projection()


async def update_state(
    store: StateStore,
    session_id: str,
    parameters: Mapping[str, Any],
) -> Dict[str, str]:
    """
    Apply indexed key/value updates and return the resulting string projection.
    """
    session = await store.load_session(session_id)

    for key, value in parse_indexed_pairs(parameters):
        if value == INCREMENT:
            value = increment_value(session.get(key))
            logger.debug("state_value_incremented", key=key, value=value)
        session.update(key, value)

    logger.info(
        "state_updated",
        session_id=session_id,
        keys=session.touched_keys,
    )
    await store.save_session(session)
    return session.string_projection()
