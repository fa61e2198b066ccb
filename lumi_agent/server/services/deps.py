"""FastAPI dependency exposing the process-wide ``OrchestratorService``."""

from typing import Annotated

from fastapi import Depends

from lumi_agent.server.services.orchestrator import OrchestratorService, get_orchestrator

# Tests swap the service through ``app.dependency_overrides[get_orchestrator]``.
OrchestratorDep = Annotated[OrchestratorService, Depends(get_orchestrator)]
