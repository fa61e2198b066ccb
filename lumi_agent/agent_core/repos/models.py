from __future__ import annotations

"""SQLAlchemy ORM models for execution persistence.

These ORM models define the SQL schema used by ``lumi_agent.agent_core.repos.sql``.

- Sessions store the full step trace and result as JSON so a partially
  executed session can be inspected after a crash.
- Tool invocations form the append-only audit log.

JSON columns use JSONB on PostgreSQL. Table names are prefixed with ``lumi_``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class ExecutionSessionRow(Base):
    """Row model for ``lumi_execution_sessions``."""

    __tablename__ = "lumi_execution_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    agent_id: Mapped[str] = mapped_column(String(64), index=True)
    user_prompt: Mapped[str] = mapped_column(Text)

    status: Mapped[str] = mapped_column(String(32))
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    steps: Mapped[List[Dict[str, Any]]] = mapped_column(JsonType, default=list)
    result: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonType, nullable=True)


class ToolInvocationRow(Base):
    """Row model for ``lumi_tool_invocations``.

    Records every tool dispatch, successful or not.
    """

    __tablename__ = "lumi_tool_invocations"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True)

    agent_id: Mapped[str] = mapped_column(String(64), index=True)
    agent_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
    tool_call_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    tool_name: Mapped[str] = mapped_column(String(256))
    arguments: Mapped[Dict[str, Any]] = mapped_column(JsonType, default=dict)
    result: Mapped[str] = mapped_column(Text, default="")
    success: Mapped[bool] = mapped_column(Boolean)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    risk: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    execution_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
