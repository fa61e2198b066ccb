from __future__ import annotations

"""Repository interface contracts.

The engine and dispatcher depend on these Protocols instead of concrete
persistence implementations.

Contract guidelines
-------------------

- All methods are async.
- Implementations must be safe for concurrent use by independent sessions.
- Failures are raised as ``StorageError``; callers decide whether they are
  fatal (the engine treats them as warnings).
- The audit log is append-only.
"""

from typing import List, Optional, Protocol

from ..schemas.domain import ExecutionSession, ToolInvocationRecord


class SessionRepository(Protocol):
    """Persist and query execution session snapshots."""

    async def create(self, session: ExecutionSession) -> None:
        """
        Persist a new session snapshot.

        Args:
            session: The session in its initial state.
        """
        ...

    async def update(self, session: ExecutionSession) -> None:
        """
        Replace the stored snapshot of an existing session.

        Args:
            session: The session with its current steps and status.
        """
        ...

    async def get(self, session_id: str) -> Optional[ExecutionSession]:
        """Return the session snapshot, or None if unknown."""
        ...

    async def get_for_agent(self, agent_id: str, limit: int = 50) -> List[ExecutionSession]:
        """Return an agent's sessions, most recently started first."""
        ...

    async def get_recent(self, limit: int = 50) -> List[ExecutionSession]:
        """Return sessions across all agents, most recently started first."""
        ...


class AuditLog(Protocol):
    """Append-only sink of tool invocation records."""

    async def append(self, record: ToolInvocationRecord) -> None:
        ...

    async def list(
        self,
        *,
        session_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[ToolInvocationRecord]:
        """Return records in insertion order, optionally filtered."""
        ...
