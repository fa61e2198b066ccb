from __future__ import annotations

import asyncio

import pytest

from lumi_agent.agent_core.repos.memory import InMemoryAuditLog
from lumi_agent.agent_core.schemas.domain import Agent, AgentConfiguration, AIProvider, RiskLevel, SecurityPolicy, ToolCall
from lumi_agent.agent_core.tools.base import RegisteredTool, ToolCategory
from lumi_agent.agent_core.tools.dispatcher import ToolDispatcher
from lumi_agent.agent_core.tools.registry import ToolRegistry


class _FailingAudit:
    async def append(self, record) -> None:
        raise RuntimeError("audit down")

    async def list(self, **kwargs):
        return []


def _agent(max_execution_time: float = 300.0) -> Agent:
    return Agent(
        name="dispatcher-agent",
        configuration=AgentConfiguration(
            provider=AIProvider.ollama,
            model="llama",
            security_policy=SecurityPolicy(max_execution_time=max_execution_time),
        ),
    )


def _registry(handler) -> ToolRegistry:
    return ToolRegistry(
        [RegisteredTool(name="work", description="does work", category=ToolCategory.text_data, handler=handler)]
    )


@pytest.mark.asyncio
async def test_successful_dispatch_is_audited() -> None:
    async def handler(arguments):
        return f"got {arguments['x']}"

    audit = InMemoryAuditLog()
    dispatcher = ToolDispatcher(_registry(handler), audit)
    agent = _agent()

    result = await dispatcher.dispatch(ToolCall(name="work", arguments={"x": 1}), agent=agent, session_id="s1", risk=RiskLevel.low)

    assert result.success
    assert result.output == "got 1"
    assert result.execution_time is not None and result.execution_time >= 0
    (record,) = await audit.list(session_id="s1")
    assert record.agent_id == agent.id
    assert record.tool_name == "work"
    assert record.arguments == {"x": "1"}
    assert record.result == "got 1"
    assert record.risk == RiskLevel.low


@pytest.mark.asyncio
async def test_unknown_tool_is_a_failed_result() -> None:
    audit = InMemoryAuditLog()
    dispatcher = ToolDispatcher(ToolRegistry(), audit)

    result = await dispatcher.dispatch(ToolCall(name="ghost"), agent=_agent())

    assert not result.success
    assert result.error == "unknown tool: ghost"
    (record,) = await audit.list()
    assert not record.success


@pytest.mark.asyncio
async def test_handler_exception_is_a_failed_result() -> None:
    async def handler(arguments):
        raise ValueError("bad input")

    result = await ToolDispatcher(_registry(handler)).dispatch(ToolCall(name="work"), agent=_agent())

    assert not result.success
    assert result.error == "bad input"


@pytest.mark.asyncio
async def test_deadline_overrun_times_out() -> None:
    finished = asyncio.Event()

    async def handler(arguments):
        try:
            await asyncio.sleep(10)
        finally:
            finished.set()
        return "late"

    audit = InMemoryAuditLog()
    dispatcher = ToolDispatcher(_registry(handler), audit)

    result = await dispatcher.dispatch(ToolCall(name="work"), agent=_agent(), timeout=0.05)

    assert not result.success
    assert result.error == "timed out"
    await dispatcher.drain()
    assert finished.is_set()
    (record,) = await audit.list()
    assert record.error == "timed out"


@pytest.mark.asyncio
async def test_policy_deadline_applies_by_default() -> None:
    async def handler(arguments):
        await asyncio.sleep(10)
        return "late"

    dispatcher = ToolDispatcher(_registry(handler))
    result = await dispatcher.dispatch(ToolCall(name="work"), agent=_agent(max_execution_time=0.05))

    assert result.error == "timed out"
    await dispatcher.drain()


@pytest.mark.asyncio
async def test_audit_failure_does_not_fail_the_tool() -> None:
    async def handler(arguments):
        return "fine"

    result = await ToolDispatcher(_registry(handler), _FailingAudit()).dispatch(ToolCall(name="work"), agent=_agent())

    assert result.success
    assert result.output == "fine"


@pytest.mark.asyncio
async def test_cancelled_dispatch_is_recorded_once_the_tool_stops() -> None:
    started = asyncio.Event()

    async def handler(arguments):
        started.set()
        await asyncio.sleep(10)
        return "never"

    audit = InMemoryAuditLog()
    dispatcher = ToolDispatcher(_registry(handler), audit)
    task = asyncio.create_task(dispatcher.dispatch(ToolCall(name="work"), agent=_agent(), session_id="s9"))
    await started.wait()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await dispatcher.drain()

    (record,) = await audit.list(session_id="s9")
    assert not record.success
    assert record.error == "cancelled"


@pytest.mark.asyncio
async def test_drain_waits_for_slow_cleanup_of_cancelled_tool() -> None:
    started = asyncio.Event()
    cleaned_up = asyncio.Event()

    async def handler(arguments):
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            await asyncio.sleep(0.05)
            cleaned_up.set()
            raise
        return "never"

    audit = InMemoryAuditLog()
    dispatcher = ToolDispatcher(_registry(handler), audit)
    task = asyncio.create_task(dispatcher.dispatch(ToolCall(name="work"), agent=_agent(), session_id="s10"))
    await started.wait()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert not cleaned_up.is_set()
    await dispatcher.drain()

    assert cleaned_up.is_set()
    (record,) = await audit.list(session_id="s10")
    assert record.error == "cancelled"


@pytest.mark.asyncio
async def test_tool_raising_timeout_error_is_a_plain_failure() -> None:
    async def handler(arguments):
        raise TimeoutError("upstream api timed out after 5s")

    audit = InMemoryAuditLog()
    dispatcher = ToolDispatcher(_registry(handler), audit)

    result = await dispatcher.dispatch(ToolCall(name="work"), agent=_agent(), timeout=30)

    assert not result.success
    assert result.error == "upstream api timed out after 5s"
    await dispatcher.drain()
    (record,) = await audit.list()
    assert record.error == "upstream api timed out after 5s"
