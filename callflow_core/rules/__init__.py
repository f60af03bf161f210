"""
Rules Engine Package

Declarative rule model and the per-turn evaluation algorithm:

    from callflow_core.rules import RuleSetCache, RuleSetResolver, JsonFileRuleSource

    cache = RuleSetCache(JsonFileRuleSource("rule_sets.json"), ttl_seconds=60)
    rule_sets = await cache.get()

    resolver = RuleSetResolver()
    rule_set = resolver.select_rule_set(session, rule_sets, dialled_number)
    resolver.prune_step_context(session)
    start = resolver.start_index(session, rule_set)
    selection = resolver.next_activated_rule(rule_set, start, session.as_dict())
"""

from .activation import ActivationEngine, extract_field_value
from .base import (
    REFERENCE_PARAM_KEYS,
    ConditionScore,
    DuplicateNameError,
    NoRuleActivatedError,
    ParamKind,
    ParamValue,
    ReferenceKind,
    ReferenceNotFoundError,
    Rule,
    RuleConfigurationError,
    RuleExhaustionError,
    RuleNotFoundError,
    RuleScore,
    RuleSelection,
    RuleSet,
    RuleSetExhaustedError,
    RuleSetNotFoundError,
    RulesEngineError,
    UnknownWeightOperationError,
    WeightCondition,
    WeightOperation,
)
from .cache import RuleSetCache, RuleSetCacheStats
from .references import (
    IGNORED_TEMPLATE_FIELDS,
    ParameterRenderer,
    Reference,
    ReferenceCatalog,
    ReferenceResolver,
)
from .resolver import RuleSetResolver, referring_rule_sets, referring_rules
from .source import InMemoryRuleSource, JsonFileRuleSource, RuleSource, parse_rule_sets
from .templates import TemplateError, TemplateRenderer, is_template, resolve_path
from .weights import WeightEvaluator

__all__ = [
    # Model
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
    # Evaluation
    "WeightEvaluator",
    "ActivationEngine",
    "extract_field_value",
    "RuleSetResolver",
    "referring_rule_sets",
    "referring_rules",
    # Loading
    "RuleSource",
    "InMemoryRuleSource",
    "JsonFileRuleSource",
    "parse_rule_sets",
    "RuleSetCache",
    "RuleSetCacheStats",
    # Templates and references
    "TemplateRenderer",
    "TemplateError",
    "is_template",
    "resolve_path",
    "Reference",
    "ReferenceResolver",
    "ReferenceCatalog",
    "ParameterRenderer",
    "IGNORED_TEMPLATE_FIELDS",
    # Errors
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
