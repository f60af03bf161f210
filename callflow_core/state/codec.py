"""
State value serialization.

Persisted scalars are always strings; dicts and lists are stored as JSON and
parsed back on load when the stored string looks like a JSON object or array.
"""

import json
import math
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)


def encode_value(value: Any) -> Optional[str]:
    """
    Encode a state value for storage.

    Returns None for values that mean "delete this attribute".
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def decode_value(key: str, raw: str) -> Any:
    """Decode a stored string, parsing JSON objects and arrays."""
    value = raw.strip()
    if (value.startswith("{") and value.endswith("}")) or (
        value.startswith("[") and value.endswith("]")
    ):
        try:
            return json.loads(value)
        except ValueError:
            logger.error("state_value_parse_failed", key=key, value=raw)
    return raw


def is_number(value: Any) -> bool:
    """
    Check whether a value can be treated as a number.

    Booleans, empty strings and the literals "true"/"false" are not numbers.
    """
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return not math.isnan(value)
    if not isinstance(value, str):
        return False
    if value.strip() in ("", "true", "false"):
        return False
    try:
        parsed = float(value)
    except ValueError:
        return False
    return not math.isnan(parsed)


def to_number(value: Any) -> float:
    """Convert a value already checked with is_number."""
    return float(value)


def format_number(value: float) -> str:
    """Format a number the way it is persisted in state."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)
