"""
Execution Sessions API Endpoints.

Start sessions, inspect their step traces, cancel them and resolve the
approvals they are waiting on.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from lumi_agent.agent_core.schemas.domain import Approval, ExecutionSession
from lumi_agent.core.logging_config import get_logger
from lumi_agent.server.schemas import ApprovalSubmit, CancelResponse, SessionCreate, SessionStarted
from lumi_agent.server.services.deps import OrchestratorDep

logger = get_logger(__name__)
router = APIRouter()


@router.post(
    "/",
    response_model=SessionStarted,
    status_code=202,
    summary="Start Session",
    description="Start executing a task for an agent. The session runs in the background.",
)
async def start_session(session_in: SessionCreate, orchestrator: OrchestratorDep):
    logger.info(f"Starting session for agent {session_in.agent.id} ({session_in.agent.name})")
    session = await orchestrator.start_session(session_in.agent, session_in.prompt, session_in.image_bytes())
    return SessionStarted(session_id=session.id, agent_id=session.agent_id, status=session.status)


@router.get(
    "/",
    response_model=List[ExecutionSession],
    summary="List Sessions",
    description="List recent sessions, most recently started first, optionally for one agent.",
)
async def list_sessions(
    orchestrator: OrchestratorDep,
    agent_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
):
    return await orchestrator.list_sessions(agent_id=agent_id, limit=limit)


@router.get(
    "/{session_id}",
    response_model=ExecutionSession,
    summary="Get Session",
    description="Retrieve a session with its full step trace.",
    responses={404: {"description": "Session not found"}},
)
async def get_session(session_id: str, orchestrator: OrchestratorDep):
    session = await orchestrator.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.post(
    "/{session_id}/cancel",
    response_model=CancelResponse,
    summary="Cancel Session",
    description="Cancel a running session, including one waiting for approval.",
    responses={404: {"description": "Session not found"}},
)
async def cancel_session(session_id: str, orchestrator: OrchestratorDep):
    cancelled = orchestrator.cancel_session(session_id)
    if not cancelled and await orchestrator.get_session(session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return CancelResponse(session_id=session_id, cancelled=cancelled)


@router.get(
    "/{session_id}/approvals",
    response_model=List[Approval],
    summary="List Pending Approvals",
)
async def list_pending_approvals(session_id: str, orchestrator: OrchestratorDep):
    return orchestrator.pending_approvals(session_id)


@router.post(
    "/{session_id}/approvals/{approval_id}",
    response_model=Approval,
    summary="Resolve Approval",
    description="Approve or reject a pending tool call. The session resumes or ends accordingly.",
    responses={404: {"description": "Approval not found"}, 409: {"description": "Approval already resolved"}},
)
async def submit_approval(session_id: str, approval_id: str, body: ApprovalSubmit, orchestrator: OrchestratorDep):
    logger.info(f"Approval {approval_id} for session {session_id}: {body.decision.value}")
    return orchestrator.submit_approval(session_id, approval_id, body.decision, body.decided_by)
