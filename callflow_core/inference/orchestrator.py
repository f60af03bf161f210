"""
Inference Orchestrator

Runs one conversational turn:

1. Load session state
2. Compute System attributes on the first turn
3. Record the caller's address
4. Advance caller disambiguation
5. Resolve the rule set, prune step context and find the start index
6. Select the first activated rule
7. Render the rule's parameters and export them into step context
8. Persist the changed attributes and return the string projection
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from ..core.logging import log_context
from ..disambiguation.workflow import DisambiguationOutcome, DisambiguationWorkflow
from ..rules.base import ReferenceKind, RuleSelection
from ..rules.cache import RuleSetCache
from ..rules.references import ParameterRenderer, ReferenceResolver
from ..rules.resolver import RuleSetResolver
from ..state.base import StateStore
from ..state.keys import StateKeys
from ..state.session import SessionState
from .system import SystemAttributeProvider

logger = structlog.get_logger(__name__)


DEFAULT_FLOW_PREFIX = "RulesEngine"


@dataclass
class TurnInput:
    """A platform event starting a turn."""

    session_id: str
    trigger_input: Optional[str] = None  # dialled address
    customer_address: Optional[str] = None
    raw_parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TurnResult:
    """Outcome of a turn."""

    session_id: str
    rule_set: str
    rule: str
    action_type: str
    state: Dict[str, str]
    disambiguation: DisambiguationOutcome = DisambiguationOutcome.SKIPPED
    written_keys: List[str] = field(default_factory=list)


class InferenceOrchestrator:
    """Selects and exports the next rule for a session."""

    def __init__(
        self,
        store: StateStore,
        cache: RuleSetCache,
        references: ReferenceResolver,
        disambiguation: DisambiguationWorkflow,
        system: Optional[SystemAttributeProvider] = None,
        resolver: Optional[RuleSetResolver] = None,
        parameters: Optional[ParameterRenderer] = None,
        flow_prefix: str = DEFAULT_FLOW_PREFIX,
    ):
        self.store = store
        self.cache = cache
        self.references = references
        self.disambiguation = disambiguation
        self.system = system or SystemAttributeProvider()
        self.resolver = resolver or RuleSetResolver()
        self.parameters = parameters or ParameterRenderer(references)
        self.flow_prefix = flow_prefix

    async def process_turn(self, turn: TurnInput) -> TurnResult:
        """
        Run a turn.

        Raises:
            RuleConfigurationError: For unresolvable rule sets, rules or references
            RuleExhaustionError: When the rule set has nothing left to activate
            TemplateError: When a rule parameter cannot be rendered
        """
        with log_context(session_id=turn.session_id):
            try:
                return await self._process(turn)
            except Exception as e:
                logger.error(
                    "inference_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

    async def _process(self, turn: TurnInput) -> TurnResult:
        logger.debug("inference_started", parameters=turn.raw_parameters)

        session = await self.store.load_session(turn.session_id)

        self.load_system_attributes(session, turn.trigger_input)
        self.store_customer_address(session, turn.customer_address)

        outcome = await self.disambiguation.run(session)

        rule_sets = await self.cache.get()
        rule_set = self.resolver.select_rule_set(
            session,
            rule_sets,
            self.dialled_number(session, turn.trigger_input),
        )
        self.resolver.prune_step_context(session)

        start = self.resolver.start_index(session, rule_set)
        selection = self.resolver.next_activated_rule(rule_set, start, session.as_dict())

        await self.export_rule(session, selection)

        written_keys = list(session.diff())
        await self.store.save_session(session)

        logger.info(
            "inference_completed",
            rule_set=rule_set.name,
            rule=selection.rule.name,
            action_type=selection.rule.action_type,
            written=len(written_keys),
        )

        return TurnResult(
            session_id=turn.session_id,
            rule_set=rule_set.name,
            rule=selection.rule.name,
            action_type=selection.rule.action_type,
            state=session.string_projection(),
            disambiguation=outcome,
            written_keys=written_keys,
        )

    def load_system_attributes(self, session: SessionState, dialled_number: Optional[str]) -> None:
        if session.get(StateKeys.SYSTEM) is None:
            session.update(StateKeys.SYSTEM, self.system.compute(dialled_number))

    def store_customer_address(self, session: SessionState, address: Optional[str]) -> None:
        """Record the caller's address; it can be absent for withheld caller ids."""
        if session.get(StateKeys.CUSTOMER_PHONE_NUMBER) is None and address:
            session.update(StateKeys.CUSTOMER_PHONE_NUMBER, address)

        if session.get(StateKeys.ORIGINAL_CUSTOMER_NUMBER) is None:
            session.update(
                StateKeys.ORIGINAL_CUSTOMER_NUMBER,
                session.get(StateKeys.CUSTOMER_PHONE_NUMBER),
            )

    def dialled_number(self, session: SessionState, fallback: Optional[str]) -> Optional[str]:
        system = session.get(StateKeys.SYSTEM)
        if isinstance(system, dict) and system.get("DialledNumber"):
            return system["DialledNumber"]
        return fallback

    async def export_rule(self, session: SessionState, selection: RuleSelection) -> None:
        """Write the selected rule and its rendered parameters into step context."""
        rule = selection.rule
        params = await self.parameters.render(rule, session.as_dict())

        next_flow = await self.references.resolve_by_name(
            ReferenceKind.FLOW,
            f"{self.flow_prefix}{rule.action_type}",
        )

        session.update(StateKeys.NEXT_FLOW_ARN, next_flow.locator)
        session.update(StateKeys.CURRENT_RULE, rule.name)

        for key, value in params.items():
            session.update(StateKeys.step_key(key), value)
