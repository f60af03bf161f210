"""Shared pytest fixtures for testing."""

import os
from datetime import datetime, timedelta
from typing import Any, AsyncGenerator, Dict, List
from uuid import uuid4

import pytest
import pytest_asyncio
import pytz

from callflow_core.disambiguation import DisambiguationWorkflow, InMemoryEntityDirectory
from callflow_core.inference import InferenceOrchestrator, SystemAttributeProvider
from callflow_core.rules import (
    InMemoryRuleSource,
    ParameterRenderer,
    Reference,
    ReferenceCatalog,
    ReferenceKind,
    RuleSetCache,
)
from callflow_core.state import InMemoryStateStore

# Set test environment
os.environ["ENVIRONMENT"] = "test"

DIALLED_NUMBER = "+61299990000"
MOBILE_NUMBER = "+61412345678"
LANDLINE_NUMBER = "+61298765432"


class FixedClock:
    """Controllable clock returning aware UTC datetimes."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, seconds: float) -> None:
        self.moment = self.moment + timedelta(seconds=seconds)


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def session_id() -> str:
    """Generate a test contact id."""
    return str(uuid4())


@pytest.fixture
def clock() -> FixedClock:
    """Tuesday 5 March 2024, 09:30 in Sydney."""
    return FixedClock(pytz.utc.localize(datetime(2024, 3, 4, 22, 30, 0)))


@pytest.fixture
def rule_set_data() -> List[Dict[str, Any]]:
    """Rule sets in their stored shape."""
    return [
        {
            "ruleSetId": "rs-main",
            "name": "Main",
            "enabled": True,
            "inboundNumbers": [DIALLED_NUMBER],
            "rules": [
                {
                    "ruleId": "r-queue",
                    "name": "Queue",
                    "type": "Queue",
                    "priority": 10,
                    "activation": 0,
                    "params": {"queueName": "Sales", "message": "prompt:Hold"},
                    "weights": [],
                },
                {
                    "ruleId": "r-greeting",
                    "name": "Greeting",
                    "type": "Message",
                    "priority": 100,
                    "activation": 0,
                    "params": {"message": "Welcome {{Customer.FirstName}}"},
                    "weights": [],
                },
                {
                    "ruleId": "r-mobile",
                    "name": "MobileOffer",
                    "type": "SMS",
                    "priority": 50,
                    "activation": 1,
                    "params": {"message": "<speak>We can text you a link</speak>"},
                    "weights": [
                        {
                            "weightId": "w-1",
                            "field": "CustomerPhoneNumber",
                            "operation": "ismobile",
                            "weight": 1,
                        }
                    ],
                },
                {
                    "ruleId": "r-disabled",
                    "name": "Disabled",
                    "type": "Message",
                    "enabled": False,
                    "priority": 75,
                    "activation": 0,
                    "params": {"message": "never"},
                },
            ],
        },
        {
            "ruleSetId": "rs-billing",
            "name": "Billing",
            "enabled": True,
            "inboundNumbers": [],
            "rules": [
                {
                    "ruleId": "r-balance",
                    "name": "Balance",
                    "type": "Integration",
                    "priority": 100,
                    "activation": 0,
                    "params": {
                        "functionName": "Balance",
                        "functionTimeout": 5,
                        "functionOutputKey": "BalanceResult",
                    },
                },
                {
                    "ruleId": "r-bail",
                    "name": "Bail",
                    "type": "RuleSetBail",
                    "priority": 10,
                    "activation": 0,
                    "params": {"ruleSetName": "Main"},
                },
            ],
        },
        {
            "ruleSetId": "rs-archived",
            "name": "Archived",
            "enabled": False,
            "inboundNumbers": ["+61200000000"],
            "rules": [],
        },
    ]


@pytest.fixture
def accounts() -> List[Dict[str, Any]]:
    """Customer account records."""
    return [
        {
            "AccountNumber": "1001",
            "AccountName": "Jane Citizen",
            "PhoneNumber1": "0412345678",
            "PostCode": "2000",
            "DateOfBirth": "01/02/1980",
        },
        {
            "AccountNumber": "1002",
            "AccountName": "John Quincy Citizen",
            "PhoneNumber1": "0298765432",
            "PostCode": "2010",
            "DateOfBirth": "03/04/1975",
        },
        {
            "AccountNumber": "1003",
            "AccountName": "Jim Citizen",
            "PhoneNumber2": "0298765432",
            "PostCode": "3000",
            "DateOfBirth": "05/06/1990",
        },
    ]


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def store() -> InMemoryStateStore:
    """Create an in-memory state store."""
    return InMemoryStateStore(record_batches=True)


@pytest.fixture
def catalog() -> ReferenceCatalog:
    """Platform objects referenced by the sample rules."""
    return ReferenceCatalog({
        ReferenceKind.QUEUE: [Reference("q-sales", "Sales", "arn:queue/q-sales")],
        ReferenceKind.FLOW: [
            Reference(f"f-{name}", f"RulesEngine{name}", f"arn:flow/{name}")
            for name in ("Message", "SMS", "Queue", "Integration", "RuleSetBail")
        ],
        ReferenceKind.FUNCTION: [
            Reference("fn-balance", "dev-callflow-Balance", "arn:function/dev-callflow-Balance"),
        ],
        ReferenceKind.PROMPT: [Reference("p-hold", "Hold", "arn:prompt/p-hold")],
    })


@pytest.fixture
def rule_source(rule_set_data) -> InMemoryRuleSource:
    return InMemoryRuleSource(rule_set_data)


@pytest.fixture
def cache(rule_source) -> RuleSetCache:
    return RuleSetCache(rule_source, ttl_seconds=60)


@pytest.fixture
def directory(accounts) -> InMemoryEntityDirectory:
    return InMemoryEntityDirectory(accounts)


@pytest.fixture
def orchestrator(store, cache, catalog, directory, clock) -> InferenceOrchestrator:
    """Create an orchestrator over in-memory collaborators."""
    return InferenceOrchestrator(
        store=store,
        cache=cache,
        references=catalog,
        disambiguation=DisambiguationWorkflow(directory),
        system=SystemAttributeProvider(
            timezone="Australia/Sydney",
            holidays=["20240305"],
            clock=clock,
        ),
        parameters=ParameterRenderer(catalog, stage="dev", service="callflow"),
    )


@pytest_asyncio.fixture
async def seeded_store(store, session_id) -> AsyncGenerator[InMemoryStateStore, None]:
    """Store holding a session with a configured action."""
    await store.save_diff(session_id, {
        "CurrentRule_functionArn": "arn:function/dev-callflow-Balance",
        "CurrentRule_functionTimeout": "5",
        "CurrentRule_functionOutputKey": "BalanceResult",
    })
    yield store
    await store.clear()
