"""
Rule Activation Engine

Computes a rule's activation score against session state. Each evaluation
allocates a fresh RuleScore; rule definitions are never modified.
"""

from typing import Any, Dict, Mapping, Optional

import structlog

from .base import ConditionScore, Rule, RuleScore, WeightCondition
from .templates import TemplateError, TemplateRenderer, resolve_path
from .weights import WeightEvaluator

logger = structlog.get_logger(__name__)


def extract_field_value(state: Mapping[str, Any], field_path: str) -> Any:
    """
    Fetch the raw value for a condition field.

    The path is dot separated; a `length` segment over a list yields its
    length. Missing intermediate segments yield None.
    """
    return resolve_path(state, field_path)


class ActivationEngine:
    """Scores rules by summing the weights of their satisfied conditions."""

    def __init__(
        self,
        evaluator: Optional[WeightEvaluator] = None,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.evaluator = evaluator or WeightEvaluator()
        self.renderer = renderer or TemplateRenderer()

    def score(self, rule: Rule, state: Mapping[str, Any]) -> RuleScore:
        """Evaluate every condition on a rule."""
        result = RuleScore(rule_name=rule.name, threshold=rule.activation_threshold)
        context = dict(state)

        for condition in rule.conditions:
            raw = extract_field_value(context, condition.field)
            expected = self._resolve_expected(condition, context)
            activated = self.evaluator.holds(condition, raw, expected)
            contribution = condition.weight if activated else 0.0

            result.weight += contribution
            result.conditions.append(
                ConditionScore(
                    field=condition.field,
                    operation=condition.operation,
                    expected=expected,
                    raw=raw,
                    activated=activated,
                    contribution=contribution,
                )
            )

        result.activated = result.weight >= float(rule.activation_threshold)
        return result

    def _resolve_expected(
        self,
        condition: WeightCondition,
        context: Dict[str, Any],
    ) -> Optional[str]:
        """Resolve condition values that are templates."""
        if not self.renderer.is_template(condition.value):
            return condition.value

        try:
            return self.renderer.render(condition.value, context)
        except TemplateError:
            logger.error(
                "weight_value_resolution_failed",
                field=condition.field,
                value=condition.value,
                exc_info=True,
            )
            return condition.value
