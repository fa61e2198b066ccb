from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from lumi_agent.agent_core.repos.memory import InMemoryAuditLog, InMemorySessionRepository
from lumi_agent.agent_core.schemas.domain import ExecutionSession, ExecutionStepType, ToolInvocationRecord


def _session(agent_id: str, minutes_ago: int) -> ExecutionSession:
    return ExecutionSession(
        agent_id=agent_id,
        user_prompt=f"prompt {minutes_ago}",
        started_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    )


@pytest.mark.asyncio
async def test_sessions_are_stored_as_copies() -> None:
    repo = InMemorySessionRepository()
    session = _session("a", 0)
    await repo.create(session)

    session.add_step(ExecutionStepType.thinking, "not saved yet")
    stored = await repo.get(session.id)
    assert stored.steps == []

    await repo.update(session)
    stored = await repo.get(session.id)
    assert len(stored.steps) == 1

    stored.add_step(ExecutionStepType.thinking, "local only")
    assert len((await repo.get(session.id)).steps) == 1


@pytest.mark.asyncio
async def test_missing_session_is_none() -> None:
    assert await InMemorySessionRepository().get("nope") is None


@pytest.mark.asyncio
async def test_queries_are_newest_first_and_limited() -> None:
    repo = InMemorySessionRepository()
    old, mid, new = _session("a", 30), _session("a", 10), _session("a", 1)
    other = _session("b", 5)
    for s in (old, new, other, mid):
        await repo.create(s)

    assert [s.id for s in await repo.get_for_agent("a")] == [new.id, mid.id, old.id]
    assert [s.id for s in await repo.get_for_agent("a", limit=2)] == [new.id, mid.id]
    assert [s.id for s in await repo.get_recent(limit=2)] == [new.id, other.id]


@pytest.mark.asyncio
async def test_audit_log_filters() -> None:
    log = InMemoryAuditLog()
    await log.append(ToolInvocationRecord(agent_id="a", session_id="s1", tool_name="echo", success=True))
    await log.append(ToolInvocationRecord(agent_id="a", session_id="s2", tool_name="echo", success=False))
    await log.append(ToolInvocationRecord(agent_id="b", session_id="s3", tool_name="read_file", success=True))

    assert len(await log.list()) == 3
    assert [r.session_id for r in await log.list(agent_id="a")] == ["s1", "s2"]
    assert [r.tool_name for r in await log.list(session_id="s3")] == ["read_file"]
    assert len(await log.list(limit=1)) == 1
