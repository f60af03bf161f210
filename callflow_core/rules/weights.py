"""
Weight Evaluator

Scores a single weight condition against the raw value extracted from
session state. Each operation contributes either nothing or the condition's
configured weight.
"""

import json
from typing import Any, Callable, Dict, Optional

import structlog

from ..state.codec import is_number, to_number
from .base import UnknownWeightOperationError, WeightCondition, WeightOperation

logger = structlog.get_logger(__name__)


DEFAULT_MOBILE_PREFIX = "+614"


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class WeightEvaluator:
    """Evaluates weight conditions."""

    def __init__(self, mobile_prefix: str = DEFAULT_MOBILE_PREFIX):
        self.mobile_prefix = mobile_prefix
        self._operations: Dict[str, Callable[[Any, Optional[str]], bool]] = {
            WeightOperation.EQUALS.value: self._equals,
            WeightOperation.NOT_EQUALS.value: lambda raw, expected: not self._equals(raw, expected),
            WeightOperation.IS_EMPTY.value: self._is_empty,
            WeightOperation.IS_NOT_EMPTY.value: lambda raw, expected: not self._is_empty(raw, expected),
            WeightOperation.IS_NULL.value: self._is_null,
            WeightOperation.IS_NOT_NULL.value: lambda raw, expected: not self._is_null(raw, expected),
            WeightOperation.IS_MOBILE.value: self._is_mobile,
            WeightOperation.IS_NOT_MOBILE.value: lambda raw, expected: not self._is_mobile(raw, expected),
            WeightOperation.LESS_THAN.value: self._less_than,
            WeightOperation.GREATER_THAN.value: self._greater_than,
        }

    def evaluate(
        self,
        condition: WeightCondition,
        raw: Any,
        expected: Optional[str] = None,
    ) -> float:
        """
        Score a condition.

        Args:
            condition: The weight condition
            raw: Value extracted from session state (None when absent)
            expected: Resolved comparison value, defaults to condition.value

        Returns:
            The condition's weight when it holds, otherwise 0

        Raises:
            UnknownWeightOperationError: If the operation is not supported
        """
        if self.holds(condition, raw, expected):
            return condition.weight
        return 0.0

    def holds(
        self,
        condition: WeightCondition,
        raw: Any,
        expected: Optional[str] = None,
    ) -> bool:
        """Check whether a condition is satisfied."""
        operation = self._operations.get(condition.operation)
        if operation is None:
            logger.error("unknown_weight_operation", operation=condition.operation)
            raise UnknownWeightOperationError(
                f"Unhandled weight operation: {condition.operation}"
            )

        if expected is None:
            expected = condition.value

        return operation(raw, expected)

    def _equals(self, raw: Any, expected: Optional[str]) -> bool:
        return _as_text(raw) == expected

    def _is_empty(self, raw: Any, expected: Optional[str]) -> bool:
        if raw is None:
            return True
        if isinstance(raw, list) and len(raw) == 0:
            return True
        return raw == ""

    def _is_null(self, raw: Any, expected: Optional[str]) -> bool:
        return raw is None

    def _is_mobile(self, raw: Any, expected: Optional[str]) -> bool:
        if raw is None:
            return False
        return str(raw).startswith(self.mobile_prefix)

    def _less_than(self, raw: Any, expected: Optional[str]) -> bool:
        if raw is None or expected is None:
            return False
        if is_number(raw) and is_number(expected):
            return to_number(raw) < to_number(expected)
        return _as_text(raw) < expected

    def _greater_than(self, raw: Any, expected: Optional[str]) -> bool:
        if raw is None or expected is None:
            return False
        if is_number(raw) and is_number(expected):
            return to_number(raw) > to_number(expected)
        return _as_text(raw) > expected
