"""
Rule Parameter References

Rule parameters can name platform objects (queues, flows, action functions
and prompts). Before a rule's parameters are exported into session state,
the names are resolved to identifiers and locators:

- queueName     -> queueId, queueArn
- flowName      -> flowId, flowArn
- functionName  -> functionArn, looked up as "{stage}-{service}-{name}"
- *message*     -> *messageType "ssml" for SSML bodies, or "prompt" plus
                   *messagePromptArn for "prompt:Name" values
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

import structlog

from .base import ReferenceKind, ReferenceNotFoundError, Rule
from .templates import TemplateError, TemplateRenderer

logger = structlog.get_logger(__name__)


# Parameters rendered after input has been collected, not when the rule fires
IGNORED_TEMPLATE_FIELDS: FrozenSet[str] = frozenset({"confirmationMessage"})

SSML_MARKER = "<speak>"
PROMPT_PREFIX = "prompt:"


@dataclass(frozen=True)
class Reference:
    """A resolved platform object."""

    id: str
    name: str
    locator: str


# =============================================================================
# Resolvers
# =============================================================================


class ReferenceResolver(ABC):
    """Resolves platform objects by name."""

    @abstractmethod
    async def resolve_by_name(self, kind: ReferenceKind, name: str) -> Reference:
        """
        Resolve a named object.

        Raises:
            ReferenceNotFoundError: If no object of that kind has the name
        """
        pass


class ReferenceCatalog(ReferenceResolver):
    """
    Reference resolver over an in-memory listing of platform objects.

    Usage:
        catalog = ReferenceCatalog()
        catalog.register(ReferenceKind.QUEUE, Reference("q-1", "Sales", "arn:queue/q-1"))
        ref = await catalog.resolve_by_name(ReferenceKind.QUEUE, "Sales")
    """

    def __init__(
        self,
        references: Optional[Mapping[ReferenceKind, Iterable[Reference]]] = None,
    ):
        self._references: Dict[ReferenceKind, Dict[str, Reference]] = {
            kind: {} for kind in ReferenceKind
        }
        for kind, items in (references or {}).items():
            for reference in items:
                self.register(kind, reference)

    @classmethod
    def from_dict(cls, data: Mapping[str, List[Dict[str, str]]]) -> "ReferenceCatalog":
        """Build a catalog from {"queue": [{"id", "name", "locator"}], ...}."""
        catalog = cls()
        for kind, items in data.items():
            for item in items:
                catalog.register(
                    ReferenceKind(kind),
                    Reference(id=item["id"], name=item["name"], locator=item["locator"]),
                )
        return catalog

    def register(self, kind: ReferenceKind, reference: Reference) -> None:
        self._references[kind][reference.name] = reference

    def names(self, kind: ReferenceKind) -> List[str]:
        return sorted(self._references[kind])

    async def resolve_by_name(self, kind: ReferenceKind, name: str) -> Reference:
        reference = self._references[kind].get(name)
        if reference is None:
            logger.error("reference_not_found", kind=kind.value, name=name)
            raise ReferenceNotFoundError(f"Could not find {kind.value}: {name}")
        return reference


# =============================================================================
# Parameter Rendering
# =============================================================================


class ParameterRenderer:
    """
    Turns a rule's tagged parameters into the flat string values exported
    into session state.
    """

    def __init__(
        self,
        references: ReferenceResolver,
        renderer: Optional[TemplateRenderer] = None,
        stage: str = "dev",
        service: str = "callflow",
        ignored_fields: FrozenSet[str] = IGNORED_TEMPLATE_FIELDS,
    ):
        self.references = references
        self.renderer = renderer or TemplateRenderer()
        self.stage = stage
        self.service = service
        self.ignored_fields = ignored_fields

    def function_name(self, name: str) -> str:
        """Deployed name of an action function."""
        return f"{self.stage}-{self.service}-{name}"

    async def render(self, rule: Rule, state: Mapping[str, Any]) -> Dict[str, str]:
        """
        Render templates and resolve references for a rule's parameters.

        Raises:
            TemplateError: If a parameter template cannot be rendered
            ReferenceNotFoundError: If a referenced object does not exist
        """
        params = self.render_templates(rule, state)
        await self.resolve_references(params)
        return params

    def render_templates(self, rule: Rule, state: Mapping[str, Any]) -> Dict[str, str]:
        context = dict(state)
        params: Dict[str, str] = {}

        for key, param in rule.params.items():
            value = param.as_string()
            # Reference names may themselves be templated
            if key not in self.ignored_fields and self.renderer.is_template(value):
                try:
                    value = self.renderer.render(value, context)
                except TemplateError:
                    logger.error("rule_template_failed", rule=rule.name, param=key)
                    raise
            params[key] = value

        return params

    async def resolve_references(self, params: Dict[str, str]) -> None:
        """Expand named references in place."""
        queue_name = params.get("queueName")
        if queue_name is not None:
            queue = await self.references.resolve_by_name(ReferenceKind.QUEUE, queue_name)
            params["queueId"] = queue.id
            params["queueArn"] = queue.locator

        flow_name = params.get("flowName")
        if flow_name is not None:
            flow = await self.references.resolve_by_name(ReferenceKind.FLOW, flow_name)
            params["flowId"] = flow.id
            params["flowArn"] = flow.locator

        function_name = params.get("functionName")
        if function_name is not None:
            function = await self.references.resolve_by_name(
                ReferenceKind.FUNCTION,
                self.function_name(function_name),
            )
            params["functionArn"] = function.locator

        for key in list(params):
            if "message" not in key.lower():
                continue

            value = params[key]
            if SSML_MARKER in value:
                params[f"{key}Type"] = "ssml"
            elif value.startswith(PROMPT_PREFIX):
                prompt = await self.references.resolve_by_name(
                    ReferenceKind.PROMPT,
                    value[len(PROMPT_PREFIX):],
                )
                params[f"{key}Type"] = "prompt"
                params[f"{key}PromptArn"] = prompt.locator
