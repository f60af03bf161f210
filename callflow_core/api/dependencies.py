"""
API Dependencies

Wires the engine components from settings and exposes them to routes.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List

import structlog
from fastapi import Request

from ..actions.runner import ActionRunner, HttpActionRunner
from ..actions.supervisor import ActionSupervisor
from ..config import Settings
from ..disambiguation.directory import InMemoryEntityDirectory
from ..disambiguation.workflow import DisambiguationWorkflow
from ..inference.orchestrator import InferenceOrchestrator
from ..inference.system import SystemAttributeProvider
from ..rules.activation import ActivationEngine
from ..rules.cache import RuleSetCache
from ..rules.references import ParameterRenderer, ReferenceCatalog
from ..rules.resolver import RuleSetResolver
from ..rules.source import JsonFileRuleSource
from ..rules.weights import WeightEvaluator
from ..state.base import StateStore
from ..state.memory import InMemoryStateStore
from ..state.redis_store import RedisStateStore

logger = structlog.get_logger(__name__)


@dataclass
class Engine:
    """The components serving API requests."""

    store: StateStore
    cache: RuleSetCache
    orchestrator: InferenceOrchestrator
    supervisor: ActionSupervisor
    runner: ActionRunner

    async def close(self) -> None:
        await self.runner.close()
        await self.store.close()


def _read_json(path: str, default: Any) -> Any:
    file = Path(path)
    if not file.exists():
        logger.warning("data_file_missing", path=path)
        return default
    return json.loads(file.read_text(encoding="utf-8"))


def build_store(settings: Settings) -> StateStore:
    if settings.state_backend == "redis":
        return RedisStateStore.from_url(
            settings.redis_url,
            key_prefix=settings.redis_key_prefix,
            ttl_seconds=settings.session_ttl_seconds,
            batch_size=settings.state_batch_size,
        )
    return InMemoryStateStore(
        ttl_seconds=settings.session_ttl_seconds,
        batch_size=settings.state_batch_size,
    )


def build_engine(settings: Settings) -> Engine:
    """Create the engine components described by settings."""
    store = build_store(settings)

    cache = RuleSetCache(
        JsonFileRuleSource(settings.rule_sets_path),
        ttl_seconds=settings.rule_cache_ttl_seconds,
    )
    references = ReferenceCatalog.from_dict(_read_json(settings.references_path, {}))
    accounts: List[Any] = _read_json(settings.accounts_path, [])

    orchestrator = InferenceOrchestrator(
        store=store,
        cache=cache,
        references=references,
        disambiguation=DisambiguationWorkflow(InMemoryEntityDirectory(accounts)),
        system=SystemAttributeProvider(
            timezone=settings.call_centre_timezone,
            holidays=settings.holidays,
            operating_hours=settings.operating_hours,
        ),
        resolver=RuleSetResolver(
            ActivationEngine(WeightEvaluator(mobile_prefix=settings.mobile_prefix))
        ),
        parameters=ParameterRenderer(
            references,
            stage=settings.stage,
            service=settings.service,
        ),
        flow_prefix=settings.action_flow_prefix,
    )

    runner = HttpActionRunner(
        base_url=settings.action_webhook_base_url,
        timeout_seconds=settings.action_webhook_timeout_seconds,
    )

    logger.info(
        "engine_built",
        state_backend=settings.state_backend,
        rule_sets_path=settings.rule_sets_path,
    )

    return Engine(
        store=store,
        cache=cache,
        orchestrator=orchestrator,
        supervisor=ActionSupervisor(store, runner),
        runner=runner,
    )


def get_engine(request: Request) -> Engine:
    return request.app.state.engine
