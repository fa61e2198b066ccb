"""
Liveness and version endpoints for probes and deployment checks.
"""

from fastapi import APIRouter

from lumi_agent import __version__
from lumi_agent.server.services.deps import OrchestratorDep

router = APIRouter()


@router.get(
    "/health",
    summary="Health Check",
    description="Report that the server is up and how many sessions are currently executing.",
)
async def health_check(orchestrator: OrchestratorDep):
    return {"status": "ok", "active_sessions": orchestrator.active_sessions}


@router.get(
    "/version",
    summary="Get Version",
    description="Report the package version and the API schema version.",
)
async def version():
    return {"version": __version__, "schema_version": "v1"}
