"""
Rule Sources

Loaders for the rule model. Sources return rule sets with their rules
attached, sorted by descending priority and filtered to enabled rule sets
and enabled rules.

The JSON file source reads the shape exported by the management console:

    [
        {
            "name": "Main",
            "enabled": true,
            "inboundNumbers": ["+61299990000"],
            "rules": [
                {"name": "Greeting", "type": "Message", "priority": 100,
                 "activation": 0, "params": {"message": "Hello"}, "weights": []}
            ]
        }
    ]
"""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Union

import structlog
from pydantic import ValidationError

from .base import DuplicateNameError, RuleConfigurationError, RuleSet

logger = structlog.get_logger(__name__)


def sort_rules(rule_set: RuleSet) -> RuleSet:
    """Order a rule set's rules by descending priority."""
    ordered = sorted(rule_set.rules, key=lambda rule: rule.priority, reverse=True)
    return rule_set.model_copy(update={"rules": ordered})


def filter_enabled(rule_sets: List[RuleSet]) -> List[RuleSet]:
    """Drop disabled rule sets and disabled rules."""
    return [
        rule_set.model_copy(
            update={"rules": [rule for rule in rule_set.rules if rule.enabled]}
        )
        for rule_set in rule_sets
        if rule_set.enabled
    ]


def check_unique_names(rule_sets: List[RuleSet]) -> None:
    seen = set()
    for rule_set in rule_sets:
        if rule_set.name in seen:
            raise DuplicateNameError(f"Duplicate rule set name: {rule_set.name}")
        seen.add(rule_set.name)


def parse_rule_sets(data: List[Dict[str, Any]]) -> List[RuleSet]:
    """
    Build rule sets from their stored shape.

    Raises:
        RuleConfigurationError: If the data does not describe valid rule sets
        DuplicateNameError: If two rule sets, or two rules in a set, share a name
    """
    try:
        rule_sets = [RuleSet.model_validate(item) for item in data]
    except ValidationError as e:
        raise RuleConfigurationError(f"Invalid rule set definition: {e}") from e

    check_unique_names(rule_sets)
    return [sort_rules(rule_set) for rule_set in rule_sets]


class RuleSource(ABC):
    """Loads the rule model."""

    @abstractmethod
    async def load_enabled_rule_sets_with_rules(self) -> List[RuleSet]:
        """Load enabled rule sets, each with its enabled rules in priority order."""
        pass


class InMemoryRuleSource(RuleSource):
    """Rule source over rule sets held in memory."""

    def __init__(self, rule_sets: List[Union[RuleSet, Dict[str, Any]]]):
        parsed = [
            rule_set if isinstance(rule_set, RuleSet) else RuleSet.model_validate(rule_set)
            for rule_set in rule_sets
        ]
        check_unique_names(parsed)
        self._rule_sets = [sort_rules(rule_set) for rule_set in parsed]
        self.load_count = 0

    async def load_enabled_rule_sets_with_rules(self) -> List[RuleSet]:
        self.load_count += 1
        return filter_enabled(self._rule_sets)


class JsonFileRuleSource(RuleSource):
    """Rule source reading an exported JSON document from disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def load_enabled_rule_sets_with_rules(self) -> List[RuleSet]:
        text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")

        try:
            data = json.loads(text)
        except ValueError as e:
            raise RuleConfigurationError(f"Invalid rule set file: {self.path}: {e}") from e

        if isinstance(data, dict):
            data = data.get("ruleSets", [])

        rule_sets = parse_rule_sets(data)
        logger.info("rule_sets_loaded", path=str(self.path), count=len(rule_sets))
        return filter_enabled(rule_sets)
