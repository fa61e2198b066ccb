from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Set

from lumi_agent.agent_core.errors import ApprovalNotFoundError
from lumi_agent.agent_core.factory import build_deps, build_engine
from lumi_agent.agent_core.runtime import EngineDeps, ExecutionEngine
from lumi_agent.agent_core.schemas.domain import (
    Agent,
    Approval,
    ApprovalDecision,
    ExecutionSession,
)
from lumi_agent.core.logging_config import get_logger

logger = get_logger(__name__)


class OrchestratorService:
    """
    Service layer for running execution sessions behind the API.

    Sessions run as background tasks on the server's event loop. The service
    keeps the live session objects of in-flight runs so callers see the
    latest trace even when storage lags behind or fails.
    """

    def __init__(self, deps: Optional[EngineDeps] = None, engine: Optional[ExecutionEngine] = None) -> None:
        if engine is not None:
            self.engine = engine
        else:
            if deps is None:
                deps = self._build_sql_deps()
            self.engine = build_engine(deps=deps)
        self.deps = self.engine.deps
        self._live: Dict[str, ExecutionSession] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._cancelled_early: Set[str] = set()

    @staticmethod
    def _build_sql_deps() -> EngineDeps:
        from lumi_agent.agent_core.repos.sql import build_sql_repos
        from lumi_agent.server.core.database import async_session_maker

        repos = build_sql_repos(session_factory=async_session_maker)
        return build_deps(sessions=repos.sessions, audit_log=repos.audit_log)

    async def start_session(self, agent: Agent, prompt: str, image_data: Optional[bytes] = None) -> ExecutionSession:
        """Schedule a new session and return a snapshot of it."""
        session = ExecutionSession(agent_id=agent.id, user_prompt=prompt)
        self._live[session.id] = session
        task = asyncio.create_task(self._run(agent, prompt, image_data, session), name=f"lumi-session-{session.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"Scheduled session {session.id} for agent {agent.id}")
        return session.model_copy(deep=True)

    async def _run(self, agent: Agent, prompt: str, image_data: Optional[bytes], session: ExecutionSession) -> None:
        try:
            if session.id in self._cancelled_early:
                result = await self.engine.cancel_unstarted(agent, session)
            else:
                result = await self.engine.execute(agent, prompt, image_data=image_data, session=session)
            logger.info(f"Session {session.id} ended: success={result.success} status={session.status.value}")
        except asyncio.CancelledError:
            logger.info(f"Session {session.id} task cancelled")
            raise
        except Exception as e:
            logger.error(f"Session {session.id} crashed: {e}", exc_info=True)
        finally:
            self._live.pop(session.id, None)
            self._cancelled_early.discard(session.id)

    @property
    def active_sessions(self) -> int:
        return len(self._live)

    async def get_session(self, session_id: str) -> Optional[ExecutionSession]:
        live = self._live.get(session_id)
        if live is not None:
            return live.model_copy(deep=True)
        return await self.deps.sessions.get(session_id)

    async def list_sessions(self, agent_id: Optional[str] = None, limit: int = 50) -> List[ExecutionSession]:
        if agent_id:
            return await self.deps.sessions.get_for_agent(agent_id, limit=limit)
        return await self.deps.sessions.get_recent(limit=limit)

    def cancel_session(self, session_id: str) -> bool:
        """
        Cancel a live session.

        A session whose task has not reached the engine yet is recorded as
        cancelled without calling the model.
        """
        if self.engine.cancel(session_id):
            return True
        live = self._live.get(session_id)
        if live is None or live.is_terminal or session_id in self._cancelled_early:
            return False
        logger.info(f"Session {session_id} cancelled before it started")
        self._cancelled_early.add(session_id)
        return True

    def pending_approvals(self, session_id: str) -> List[Approval]:
        return self.deps.approvals.pending(session_id)

    def submit_approval(
        self,
        session_id: str,
        approval_id: str,
        decision: ApprovalDecision,
        decided_by: Optional[str] = None,
    ) -> Approval:
        approval = self.deps.approvals.get(approval_id)
        if approval is None or approval.session_id != session_id:
            raise ApprovalNotFoundError(approval_id)
        return self.deps.approvals.resolve(approval_id, decision, decided_by)

    async def shutdown(self) -> None:
        """Cancel in-flight sessions and flush pending audit writes."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.engine.dispatcher.drain()


# Global singleton
_orchestrator: Optional[OrchestratorService] = None


def get_orchestrator() -> OrchestratorService:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = OrchestratorService()
    return _orchestrator
