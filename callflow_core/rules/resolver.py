"""
Rule Set Resolver

Decides which rule set drives the current turn, where in that rule set
evaluation resumes, and which rule fires next.

Rule set selection priority:
1. A pending NextRuleSet directive, consumed once used
2. The session's CurrentRuleSet
3. The rule set whose inbound triggers include the dialled address
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog

from ..state.keys import StateKeys
from ..state.session import SessionState
from .activation import ActivationEngine
from .base import (
    NoRuleActivatedError,
    Rule,
    RuleScore,
    RuleSelection,
    RuleSet,
    RuleSetExhaustedError,
    RuleSetNotFoundError,
)

logger = structlog.get_logger(__name__)


# Rule types that name another rule set, mapped to the parameters that can
# hold the name
RULE_SET_REFERENCE_PARAMS: Dict[str, Sequence[str]] = {
    "DTMFMenu": ("errorRuleSetName",),
    "RuleSet": ("ruleSetName",),
    "RuleSetBail": ("ruleSetName",),
    "RuleSetPrompt": ("ruleSetName", "errorRuleSetName"),
    "DTMFInput": ("errorRuleSetName",),
    "DTMFSelector": ("errorRuleSetName",),
}

DTMF_MENU_OPTION_PREFIX = "dtmf"


class RuleSetResolver:
    """Resolves the rule set and the next activated rule for a session."""

    def __init__(self, engine: Optional[ActivationEngine] = None):
        self.engine = engine or ActivationEngine()

    # -------------------------------------------------------------------------
    # Rule set selection
    # -------------------------------------------------------------------------

    def select_rule_set(
        self,
        state: SessionState,
        rule_sets: List[RuleSet],
        trigger: Optional[str],
    ) -> RuleSet:
        """
        Select the rule set for this turn, updating navigation state.

        Raises:
            RuleSetNotFoundError: If no rule set can be resolved
        """
        next_name = state.get(StateKeys.NEXT_RULE_SET)
        if next_name is not None:
            rule_set = self.find_by_name(rule_sets, next_name)
            state.delete(StateKeys.NEXT_RULE_SET)
            state.delete(StateKeys.CURRENT_RULE)
            state.update(StateKeys.CURRENT_RULE_SET, rule_set.name)
            logger.info(
                "rule_set_switched",
                session_id=state.session_id,
                rule_set=rule_set.name,
            )
            return rule_set

        current_name = state.get(StateKeys.CURRENT_RULE_SET)
        if current_name is not None:
            return self.find_by_name(rule_sets, current_name)

        logger.debug(
            "rule_set_trigger_lookup",
            session_id=state.session_id,
            trigger=trigger,
        )
        rule_set = self.find_by_trigger(rule_sets, trigger)
        state.update(StateKeys.CURRENT_RULE_SET, rule_set.name)
        state.delete(StateKeys.CURRENT_RULE)
        return rule_set

    def find_by_name(self, rule_sets: List[RuleSet], name: str) -> RuleSet:
        for rule_set in rule_sets:
            if rule_set.name == name:
                return rule_set
        raise RuleSetNotFoundError(f"Failed to find rule set for name: {name}")

    def find_by_trigger(self, rule_sets: List[RuleSet], trigger: Optional[str]) -> RuleSet:
        if trigger is not None:
            for rule_set in rule_sets:
                if trigger in rule_set.inbound_triggers:
                    return rule_set
        raise RuleSetNotFoundError(f"Failed to find rule set by dialled number: {trigger}")

    # -------------------------------------------------------------------------
    # Rule selection
    # -------------------------------------------------------------------------

    def prune_step_context(self, state: SessionState) -> List[str]:
        """Remove scratch keys left over from the previous step."""
        pruned = [key for key in state.keys() if StateKeys.is_step_key(key)]
        for key in pruned:
            state.delete(key)
        return pruned

    def start_index(self, state: SessionState, rule_set: RuleSet) -> int:
        """
        Index of the first rule to evaluate.

        Raises:
            RuleNotFoundError: If the current rule is not in the rule set
            RuleSetExhaustedError: If the current rule was the last one
        """
        index = 0
        current_rule = state.get(StateKeys.CURRENT_RULE)
        if current_rule is not None:
            index = rule_set.rule_index(current_rule) + 1

        if index >= len(rule_set.rules):
            raise RuleSetExhaustedError(
                f"Reached the end of a rule set's rules: {rule_set.name}"
            )
        return index

    def next_activated_rule(
        self,
        rule_set: RuleSet,
        start: int,
        state: Mapping[str, Any],
    ) -> RuleSelection:
        """
        Walk rules from `start` and return the first one that activates.

        Raises:
            NoRuleActivatedError: If no remaining rule activates
        """
        evaluated: List[RuleScore] = []

        for index in range(start, len(rule_set.rules)):
            rule = rule_set.rules[index]
            score = self.engine.score(rule, state)
            evaluated.append(score)

            if score.activated:
                logger.info(
                    "rule_activated",
                    rule_set=rule_set.name,
                    rule=rule.name,
                    weight=score.weight,
                    threshold=score.threshold,
                )
                return RuleSelection(rule=rule, index=index, score=score, evaluated=evaluated)

        raise NoRuleActivatedError(
            f"Failed to find the next rule on rule set: {rule_set.name}"
        )


def referring_rules(rule_set: RuleSet, rule_sets: List[RuleSet]) -> List[Rule]:
    """Every rule, across all rule sets, that points at `rule_set`."""
    rules: List[Rule] = []
    for matches in referring_rule_sets(rule_set, rule_sets).values():
        rules.extend(matches)
    return rules


def referring_rule_sets(
    rule_set: RuleSet,
    rule_sets: List[RuleSet],
) -> Dict[str, List[Rule]]:
    """
    Find the rule sets containing rules that point at `rule_set`.

    Returns:
        Mapping of referring rule set name to its matching rules
    """
    referring: Dict[str, List[Rule]] = {}

    for candidate in rule_sets:
        matches = [rule for rule in candidate.rules if _refers_to(rule, rule_set.name)]
        if matches:
            referring[candidate.name] = matches

    return referring


def _refers_to(rule: Rule, rule_set_name: str) -> bool:
    param_names = RULE_SET_REFERENCE_PARAMS.get(rule.action_type)
    if param_names is None:
        return False

    names = list(param_names)
    if rule.action_type == "DTMFMenu":
        names.extend(key for key in rule.params if key.startswith(DTMF_MENU_OPTION_PREFIX))

    for name in names:
        param = rule.params.get(name)
        if param is not None and param.as_string() == rule_set_name:
            return True
    return False
