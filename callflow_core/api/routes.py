"""
Callflow API Routes

Endpoints invoked by the telephony platform during a call.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..inference.orchestrator import TurnInput
from ..inference.state_ops import load_state, update_state
from .dependencies import Engine, get_engine

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Callflow"])


# =============================================================================
# Request/Response Models
# =============================================================================


class InferenceRequest(BaseModel):
    """A platform event starting a turn."""

    session_id: str = Field(..., description="Contact id of the call")
    trigger_input: Optional[str] = Field(
        default=None,
        description="Dialled address used to choose the initial rule set",
    )
    customer_address: Optional[str] = Field(
        default=None,
        description="Caller address, absent when caller id is withheld",
    )
    parameters: Dict[str, Any] = Field(default_factory=dict)


class InferenceResponse(BaseModel):
    session_id: str
    rule_set: str
    rule: str
    action_type: str
    disambiguation: str
    state: Dict[str, str]


class StateUpdateRequest(BaseModel):
    """Indexed key/value pairs: key1, value1, key2, value2, ..."""

    parameters: Dict[str, Optional[str]] = Field(default_factory=dict)


class StateResponse(BaseModel):
    session_id: str
    state: Dict[str, str]


class ActionStatusResponse(BaseModel):
    session_id: str
    status: Optional[str]


class ActionCompleteRequest(BaseModel):
    output: Any = None


class ActionFailRequest(BaseModel):
    cause: str


class ActionTransitionResponse(BaseModel):
    session_id: str
    accepted: bool


class TimeoutCheckResponse(BaseModel):
    session_id: str
    timed_out: bool
    status: Optional[str]
    overdue_seconds: float
    state: Dict[str, str]


# =============================================================================
# Routes
# =============================================================================


@router.post("/inference", response_model=InferenceResponse)
async def run_inference(
    request: InferenceRequest,
    engine: Engine = Depends(get_engine),
) -> InferenceResponse:
    """Select the next rule for a call."""
    result = await engine.orchestrator.process_turn(
        TurnInput(
            session_id=request.session_id,
            trigger_input=request.trigger_input,
            customer_address=request.customer_address,
            raw_parameters=request.parameters,
        )
    )
    return InferenceResponse(
        session_id=result.session_id,
        rule_set=result.rule_set,
        rule=result.rule,
        action_type=result.action_type,
        disambiguation=result.disambiguation.value,
        state=result.state,
    )


@router.get("/sessions/{session_id}/state", response_model=StateResponse)
async def get_state(
    session_id: str,
    engine: Engine = Depends(get_engine),
) -> StateResponse:
    return StateResponse(session_id=session_id, state=await load_state(engine.store, session_id))


@router.post("/sessions/{session_id}/state", response_model=StateResponse)
async def post_state(
    session_id: str,
    request: StateUpdateRequest,
    engine: Engine = Depends(get_engine),
) -> StateResponse:
    state = await update_state(engine.store, session_id, request.parameters)
    return StateResponse(session_id=session_id, state=state)


@router.post("/sessions/{session_id}/action/start", response_model=ActionStatusResponse)
async def start_action(
    session_id: str,
    engine: Engine = Depends(get_engine),
) -> ActionStatusResponse:
    status = await engine.supervisor.start(session_id)
    return ActionStatusResponse(session_id=session_id, status=status.value)


@router.post("/sessions/{session_id}/action/running", response_model=ActionTransitionResponse)
async def action_running(
    session_id: str,
    engine: Engine = Depends(get_engine),
) -> ActionTransitionResponse:
    accepted = await engine.supervisor.mark_running(session_id)
    return ActionTransitionResponse(session_id=session_id, accepted=accepted)


@router.post("/sessions/{session_id}/action/complete", response_model=ActionTransitionResponse)
async def complete_action(
    session_id: str,
    request: ActionCompleteRequest,
    engine: Engine = Depends(get_engine),
) -> ActionTransitionResponse:
    accepted = await engine.supervisor.complete(session_id, request.output)
    return ActionTransitionResponse(session_id=session_id, accepted=accepted)


@router.post("/sessions/{session_id}/action/fail", response_model=ActionTransitionResponse)
async def fail_action(
    session_id: str,
    request: ActionFailRequest,
    engine: Engine = Depends(get_engine),
) -> ActionTransitionResponse:
    accepted = await engine.supervisor.fail(session_id, request.cause)
    return ActionTransitionResponse(session_id=session_id, accepted=accepted)


@router.post("/sessions/{session_id}/action/timeout-check", response_model=TimeoutCheckResponse)
async def check_action_timeout(
    session_id: str,
    engine: Engine = Depends(get_engine),
) -> TimeoutCheckResponse:
    check = await engine.supervisor.check_timeout(session_id)
    return TimeoutCheckResponse(
        session_id=session_id,
        timed_out=check.timed_out,
        status=check.status.value if check.status else None,
        overdue_seconds=check.overdue_seconds,
        state=check.state,
    )


@router.post("/rule-sets/invalidate", status_code=204)
async def invalidate_rule_sets(engine: Engine = Depends(get_engine)) -> None:
    """Drop cached rule sets after they have been edited."""
    await engine.cache.invalidate()
