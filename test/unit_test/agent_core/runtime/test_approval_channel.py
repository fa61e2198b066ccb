from __future__ import annotations

import asyncio

import pytest

from lumi_agent.agent_core.errors import ApprovalAlreadyResolvedError, ApprovalNotFoundError
from lumi_agent.agent_core.runtime.approvals import ApprovalChannel
from lumi_agent.agent_core.schemas.domain import Approval, ApprovalDecision, RiskLevel


def _approval(session_id: str = "s1") -> Approval:
    return Approval(
        session_id=session_id,
        tool_call_id="c1",
        tool_name="execute_command",
        action="ls",
        risk=RiskLevel.medium,
        reason="approval required",
    )


@pytest.mark.asyncio
async def test_wait_returns_the_decision() -> None:
    channel = ApprovalChannel()
    approval = channel.open(_approval())
    waiter = asyncio.create_task(channel.wait(approval.id))
    await asyncio.sleep(0)
    assert not waiter.done()

    channel.resolve(approval.id, ApprovalDecision.approved, "bob")
    resolved = await waiter

    assert resolved.decision == ApprovalDecision.approved
    assert resolved.decided_by == "bob"
    assert resolved.decided_at is not None
    assert channel.pending() == []
    assert channel.get(approval.id).decision == ApprovalDecision.approved


@pytest.mark.asyncio
async def test_resolving_twice_is_an_error() -> None:
    channel = ApprovalChannel()
    approval = channel.open(_approval())
    channel.resolve(approval.id, ApprovalDecision.rejected)
    with pytest.raises(ApprovalAlreadyResolvedError):
        channel.resolve(approval.id, ApprovalDecision.approved)


@pytest.mark.asyncio
async def test_wait_after_resolution_returns_immediately() -> None:
    channel = ApprovalChannel()
    approval = channel.open(_approval())
    channel.resolve(approval.id, ApprovalDecision.rejected, "carol")
    resolved = await channel.wait(approval.id)
    assert resolved.decision == ApprovalDecision.rejected


@pytest.mark.asyncio
async def test_unknown_approval() -> None:
    channel = ApprovalChannel()
    with pytest.raises(ApprovalNotFoundError):
        channel.resolve("nope", ApprovalDecision.approved)
    with pytest.raises(ApprovalNotFoundError):
        await channel.wait("nope")


@pytest.mark.asyncio
async def test_resolve_session_resolves_only_that_session() -> None:
    channel = ApprovalChannel()
    a = channel.open(_approval("s1"))
    b = channel.open(_approval("s1"))
    other = channel.open(_approval("s2"))

    resolved = channel.resolve_session("s1", ApprovalDecision.approved, "ops")

    assert {r.id for r in resolved} == {a.id, b.id}
    assert [p.id for p in channel.pending()] == [other.id]
    with pytest.raises(ApprovalNotFoundError):
        channel.resolve_session("s1", ApprovalDecision.approved)


@pytest.mark.asyncio
async def test_discard_cancels_the_waiter() -> None:
    channel = ApprovalChannel()
    approval = channel.open(_approval())
    waiter = asyncio.create_task(channel.wait(approval.id))
    await asyncio.sleep(0)

    channel.discard(approval.id)

    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert channel.get(approval.id) is None


@pytest.mark.asyncio
async def test_discard_forgets_a_resolved_approval() -> None:
    channel = ApprovalChannel()
    approval = channel.open(_approval())
    channel.resolve(approval.id, ApprovalDecision.approved, "bob")
    await channel.wait(approval.id)

    channel.discard(approval.id)

    assert channel.get(approval.id) is None
    with pytest.raises(ApprovalNotFoundError):
        channel.resolve(approval.id, ApprovalDecision.rejected)
