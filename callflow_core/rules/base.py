"""
Rules Engine Base Types

This module defines the rule model evaluated on every turn:
- Rule sets, selected per session and holding an ordered list of rules
- Rules, each with an action type, tagged parameters and weighted conditions
- Scoring records produced by evaluation, kept separate from the immutable
  rule definitions
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.errors import CallflowError
from ..state.codec import format_number
from .templates import is_template


# =============================================================================
# Enums
# =============================================================================


class WeightOperation(str, Enum):
    """Supported weight condition operations."""

    EQUALS = "equals"
    NOT_EQUALS = "notequals"
    IS_EMPTY = "isempty"
    IS_NOT_EMPTY = "isnotempty"
    IS_NULL = "isnull"
    IS_NOT_NULL = "isnotnull"
    IS_MOBILE = "ismobile"
    IS_NOT_MOBILE = "isnotmobile"
    LESS_THAN = "lessthan"
    GREATER_THAN = "greaterthan"


class ParamKind(str, Enum):
    """How a rule parameter is interpreted at export time."""

    STRING = "string"
    TEMPLATE = "template"
    NUMBER = "number"
    REFERENCE = "reference"


class ReferenceKind(str, Enum):
    """Named platform objects a parameter can refer to."""

    QUEUE = "queue"
    FLOW = "flow"
    FUNCTION = "function"
    PROMPT = "prompt"


# Parameter keys that name platform objects
REFERENCE_PARAM_KEYS: Dict[str, ReferenceKind] = {
    "queueName": ReferenceKind.QUEUE,
    "flowName": ReferenceKind.FLOW,
    "functionName": ReferenceKind.FUNCTION,
}


# =============================================================================
# Rule Model
# =============================================================================


class ParamValue(BaseModel):
    """A tagged rule parameter value."""

    model_config = ConfigDict(frozen=True)

    kind: ParamKind = ParamKind.STRING
    value: Union[float, str] = ""
    reference_kind: Optional[ReferenceKind] = None

    @classmethod
    def from_raw(cls, key: str, raw: Any) -> "ParamValue":
        """Classify a stored parameter value."""
        if isinstance(raw, ParamValue):
            return raw
        if isinstance(raw, dict) and "kind" in raw:
            return cls.model_validate(raw)
        if isinstance(raw, bool):
            return cls(kind=ParamKind.STRING, value="true" if raw else "false")
        if isinstance(raw, (int, float)):
            return cls(kind=ParamKind.NUMBER, value=float(raw))
        if isinstance(raw, (dict, list)):
            return cls(kind=ParamKind.STRING, value=json.dumps(raw))

        text = "" if raw is None else str(raw)

        if key in REFERENCE_PARAM_KEYS:
            return cls(
                kind=ParamKind.REFERENCE,
                value=text,
                reference_kind=REFERENCE_PARAM_KEYS[key],
            )
        if is_template(text):
            return cls(kind=ParamKind.TEMPLATE, value=text)
        return cls(kind=ParamKind.STRING, value=text)

    def as_string(self) -> str:
        if self.kind == ParamKind.NUMBER:
            return format_number(float(self.value))
        return str(self.value)


class WeightCondition(BaseModel):
    """One scored predicate over session state."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    weight_id: str = Field(default="", alias="weightId")
    field: str
    operation: str
    value: Optional[str] = None
    weight: float = 0.0

    @field_validator("field", "operation", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return format_number(float(value))
        return str(value).strip()


class Rule(BaseModel):
    """
    A rule within a rule set.

    Rules are immutable; evaluation results are recorded in RuleScore.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    rule_id: str = Field(default="", alias="ruleId")
    rule_set_id: str = Field(default="", alias="ruleSetId")
    name: str
    description: str = ""
    enabled: bool = True
    priority: float = 0.0
    activation_threshold: float = Field(default=0.0, alias="activation")
    action_type: str = Field(alias="type")
    params: Dict[str, ParamValue] = Field(default_factory=dict)
    conditions: List[WeightCondition] = Field(default_factory=list, alias="weights")

    @field_validator("params", mode="before")
    @classmethod
    def _tag_params(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            value = json.loads(value) if value else {}
        return {key: ParamValue.from_raw(key, raw) for key, raw in value.items()}

    @field_validator("conditions", mode="before")
    @classmethod
    def _parse_conditions(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return json.loads(value) if value else []
        return value


class RuleSet(BaseModel):
    """A named, ordered collection of rules."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    rule_set_id: str = Field(default="", alias="ruleSetId")
    name: str
    description: str = ""
    enabled: bool = True
    inbound_triggers: List[str] = Field(default_factory=list, alias="inboundNumbers")
    rules: List[Rule] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_rule_names(self) -> "RuleSet":
        seen = set()
        for rule in self.rules:
            if rule.name in seen:
                raise DuplicateNameError(
                    f"Duplicate rule name: {rule.name} on rule set: {self.name}"
                )
            seen.add(rule.name)
        return self

    def rule_index(self, rule_name: str) -> int:
        """Find the index of a rule by name."""
        for index, rule in enumerate(self.rules):
            if rule.name == rule_name:
                return index
        raise RuleNotFoundError(
            f"Failed to locate rule by name: {rule_name} on rule set: {self.name}"
        )


# =============================================================================
# Scoring Records
# =============================================================================


@dataclass
class ConditionScore:
    """Evaluation of a single condition."""

    field: str
    operation: str
    expected: Optional[str]
    raw: Any
    activated: bool = False
    contribution: float = 0.0


@dataclass
class RuleScore:
    """Evaluation of a rule against session state."""

    rule_name: str
    threshold: float
    weight: float = 0.0
    activated: bool = False
    conditions: List[ConditionScore] = field(default_factory=list)


@dataclass
class RuleSelection:
    """The rule chosen for the current turn."""

    rule: Rule
    index: int
    score: RuleScore
    evaluated: List[RuleScore] = field(default_factory=list)


# =============================================================================
# Exceptions
# =============================================================================


class RulesEngineError(CallflowError):
    """Base exception for rules engine errors."""
    pass


class RuleConfigurationError(RulesEngineError):
    """Rule configuration is invalid or references something missing."""
    pass


class UnknownWeightOperationError(RuleConfigurationError):
    """A weight condition uses an unsupported operation."""
    pass


class RuleSetNotFoundError(RuleConfigurationError):
    """No rule set could be resolved for the session."""
    pass


class RuleNotFoundError(RuleConfigurationError):
    """A rule name could not be found in its rule set."""
    pass


class ReferenceNotFoundError(RuleConfigurationError):
    """A named platform object could not be resolved."""
    pass


class DuplicateNameError(RuleConfigurationError):
    """Two rule sets, or two rules in one set, share a name."""
    pass


class RuleExhaustionError(RulesEngineError):
    """The current rule set has no further rules to offer."""
    pass


class RuleSetExhaustedError(RuleExhaustionError):
    """The current rule was the last in its rule set."""
    pass


class NoRuleActivatedError(RuleExhaustionError):
    """No remaining rule reached its activation threshold."""
    pass


__all__ = [
    "WeightOperation",
    "ParamKind",
    "ReferenceKind",
    "REFERENCE_PARAM_KEYS",
    "ParamValue",
    "WeightCondition",
    "Rule",
    "RuleSet",
    "ConditionScore",
    "RuleScore",
    "RuleSelection",
    "RulesEngineError",
    "RuleConfigurationError",
    "UnknownWeightOperationError",
    "RuleSetNotFoundError",
    "RuleNotFoundError",
    "ReferenceNotFoundError",
    "DuplicateNameError",
    "RuleExhaustionError",
    "RuleSetExhaustedError",
    "NoRuleActivatedError",
]
