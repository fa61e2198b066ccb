from __future__ import annotations

"""SQLAlchemy async repository implementations.

This module provides SQL-backed implementations of the repository interfaces
defined in ``lumi_agent.agent_core.repos.interfaces``.

Usage
-----

- Create an async engine with ``create_engine``.
- Create tables with ``create_all`` (for tests/dev).
- Create a session factory with ``create_sessionmaker``.
- Build repository instances with ``build_sql_repos``.

Transaction model
-----------------

Each repository method opens an ``AsyncSession``, performs its operation, and
commits. Any SQLAlchemy failure is re-raised as ``StorageError``.
"""

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..errors import StorageError
from ..schemas.domain import (
    ExecutionResult,
    ExecutionSession,
    ExecutionStatus,
    ExecutionStep,
    RiskLevel,
    ToolInvocationRecord,
)
from .interfaces import AuditLog, SessionRepository
from .models import Base, ExecutionSessionRow, ToolInvocationRow

logger = logging.getLogger(__name__)


def create_engine(db_url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Postgres URLs are normalized to the asyncpg driver, e.g. ``postgresql://``
    becomes ``postgresql+asyncpg://``.
    """
    url = re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables for the current ORM metadata."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Storage operation '%s' failed: %s", operation, exc)
        raise StorageError(f"{operation} failed: {exc}") from exc


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo; everything is stored in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _session_to_row(session: ExecutionSession) -> ExecutionSessionRow:
    return ExecutionSessionRow(
        id=session.id,
        agent_id=session.agent_id,
        user_prompt=session.user_prompt,
        status=session.status.value,
        started_at=session.started_at,
        completed_at=session.completed_at,
        steps=[step.model_dump(mode="json") for step in session.steps],
        result=session.result.model_dump(mode="json") if session.result is not None else None,
    )


def _row_to_session(row: ExecutionSessionRow) -> ExecutionSession:
    return ExecutionSession(
        id=row.id,
        agent_id=row.agent_id,
        user_prompt=row.user_prompt,
        status=ExecutionStatus(row.status),
        started_at=_as_utc(row.started_at),
        completed_at=_as_utc(row.completed_at),
        steps=[ExecutionStep.model_validate(s) for s in (row.steps or [])],
        result=ExecutionResult.model_validate(row.result) if row.result is not None else None,
    )


@dataclass(frozen=True)
class SqlSessionRepository(SessionRepository):
    """SQL implementation of ``SessionRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def create(self, session: ExecutionSession) -> None:
        with _storage_errors("create session"):
            async with self.session_factory() as s:
                s.add(_session_to_row(session))
                await s.commit()

    async def update(self, session: ExecutionSession) -> None:
        """
        Replace the stored snapshot of a session.

        A session whose initial ``create`` was lost is inserted, so later
        snapshots still reach storage.
        """
        with _storage_errors("update session"):
            async with self.session_factory() as s:
                await s.merge(_session_to_row(session))
                await s.commit()

    async def get(self, session_id: str) -> Optional[ExecutionSession]:
        with _storage_errors("get session"):
            async with self.session_factory() as s:
                row = await s.get(ExecutionSessionRow, session_id)
                if row is None:
                    return None
                return _row_to_session(row)

    async def get_for_agent(self, agent_id: str, limit: int = 50) -> List[ExecutionSession]:
        with _storage_errors("list agent sessions"):
            async with self.session_factory() as s:
                stmt = (
                    select(ExecutionSessionRow)
                    .where(ExecutionSessionRow.agent_id == agent_id)
                    .order_by(ExecutionSessionRow.started_at.desc())
                    .limit(limit)
                )
                result = await s.execute(stmt)
                return [_row_to_session(r) for r in result.scalars().all()]

    async def get_recent(self, limit: int = 50) -> List[ExecutionSession]:
        with _storage_errors("list recent sessions"):
            async with self.session_factory() as s:
                stmt = select(ExecutionSessionRow).order_by(ExecutionSessionRow.started_at.desc()).limit(limit)
                result = await s.execute(stmt)
                return [_row_to_session(r) for r in result.scalars().all()]


@dataclass(frozen=True)
class SqlAuditLog(AuditLog):
    """SQL implementation of ``AuditLog`` (append-only)."""

    session_factory: async_sessionmaker[AsyncSession]

    async def append(self, record: ToolInvocationRecord) -> None:
        with _storage_errors("append tool invocation"):
            async with self.session_factory() as s:
                s.add(
                    ToolInvocationRow(
                        id=record.id,
                        agent_id=record.agent_id,
                        agent_name=record.agent_name,
                        session_id=record.session_id,
                        tool_call_id=record.tool_call_id,
                        tool_name=record.tool_name,
                        arguments=dict(record.arguments),
                        result=record.result,
                        success=record.success,
                        error=record.error,
                        risk=record.risk.value if record.risk is not None else None,
                        execution_time=record.execution_time,
                        created_at=record.timestamp,
                    )
                )
                await s.commit()

    async def list(
        self,
        *,
        session_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[ToolInvocationRecord]:
        with _storage_errors("list tool invocations"):
            async with self.session_factory() as s:
                stmt = select(ToolInvocationRow)
                if session_id is not None:
                    stmt = stmt.where(ToolInvocationRow.session_id == session_id)
                if agent_id is not None:
                    stmt = stmt.where(ToolInvocationRow.agent_id == agent_id)
                stmt = stmt.order_by(ToolInvocationRow.seq.asc()).limit(limit)
                result = await s.execute(stmt)
                return [
                    ToolInvocationRecord(
                        id=row.id,
                        agent_id=row.agent_id,
                        agent_name=row.agent_name,
                        session_id=row.session_id,
                        tool_call_id=row.tool_call_id,
                        tool_name=row.tool_name,
                        arguments=dict(row.arguments or {}),
                        result=row.result,
                        success=row.success,
                        error=row.error,
                        risk=RiskLevel(row.risk) if row.risk else None,
                        execution_time=row.execution_time,
                        timestamp=_as_utc(row.created_at),
                    )
                    for row in result.scalars().all()
                ]


@dataclass(frozen=True)
class SqlRepoBundle:
    """Convenience bundle of the SQL repositories for dependency injection."""

    sessions: SqlSessionRepository
    audit_log: SqlAuditLog


def build_sql_repos(*, session_factory: async_sessionmaker[AsyncSession]) -> SqlRepoBundle:
    """Build a ``SqlRepoBundle`` from a session factory."""
    return SqlRepoBundle(
        sessions=SqlSessionRepository(session_factory=session_factory),
        audit_log=SqlAuditLog(session_factory=session_factory),
    )
