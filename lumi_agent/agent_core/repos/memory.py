"""In-memory repository implementations.

Records are stored as deep copies so callers never share mutable state with
the store. Useful for tests and for running the engine without a database.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from ..schemas.domain import ExecutionSession, ToolInvocationRecord


class InMemorySessionRepository:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._sessions: Dict[str, ExecutionSession] = {}

    async def create(self, session: ExecutionSession) -> None:
        async with self._lock:
            self._sessions[session.id] = session.model_copy(deep=True)

    async def update(self, session: ExecutionSession) -> None:
        async with self._lock:
            self._sessions[session.id] = session.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[ExecutionSession]:
        async with self._lock:
            s = self._sessions.get(session_id)
            return s.model_copy(deep=True) if s is not None else None

    async def get_for_agent(self, agent_id: str, limit: int = 50) -> List[ExecutionSession]:
        async with self._lock:
            rows = [s for s in self._sessions.values() if s.agent_id == agent_id]
        rows.sort(key=lambda s: s.started_at, reverse=True)
        return [s.model_copy(deep=True) for s in rows[:limit]]

    async def get_recent(self, limit: int = 50) -> List[ExecutionSession]:
        async with self._lock:
            rows = list(self._sessions.values())
        rows.sort(key=lambda s: s.started_at, reverse=True)
        return [s.model_copy(deep=True) for s in rows[:limit]]


class InMemoryAuditLog:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._records: List[ToolInvocationRecord] = []

    async def append(self, record: ToolInvocationRecord) -> None:
        async with self._lock:
            self._records.append(record.model_copy(deep=True))

    async def list(
        self,
        *,
        session_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[ToolInvocationRecord]:
        async with self._lock:
            out = [
                r
                for r in self._records
                if (session_id is None or r.session_id == session_id)
                and (agent_id is None or r.agent_id == agent_id)
            ]
        return [r.model_copy(deep=True) for r in out[:limit]]
