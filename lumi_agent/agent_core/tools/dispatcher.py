"""Tool dispatch with deadline handling and audit logging.

``ToolDispatcher.dispatch`` never raises for tool faults: an unknown tool, a
handler exception and a deadline overrun all come back as a failed
``ToolResult``. The only exception that escapes is ``CancelledError`` from
the caller; in that case the handler task is cancelled and its audit record
is written once the task actually finishes.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Set

from ..repos.interfaces import AuditLog
from ..schemas.domain import Agent, RiskLevel, ToolCall, ToolInvocationRecord, ToolResult
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

TIMED_OUT = "timed out"
CANCELLED = "cancelled"


def _as_text(output: object) -> str:
    if output is None:
        return ""
    return output if isinstance(output, str) else str(output)


class ToolDispatcher:
    def __init__(self, registry: ToolRegistry, audit_log: Optional[AuditLog] = None) -> None:
        self._registry = registry
        self._audit = audit_log
        self._pending_writes: Set[asyncio.Future] = set()
        self._abandoned: Set[asyncio.Future] = set()

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def dispatch(
        self,
        call: ToolCall,
        *,
        agent: Agent,
        session_id: Optional[str] = None,
        timeout: Optional[float] = None,
        risk: Optional[RiskLevel] = None,
    ) -> ToolResult:
        """
        Run one tool call and report it to the audit log.

        Args:
            call: The tool call issued by the model.
            agent: The agent on whose behalf the tool runs.
            session_id: Owning execution session, recorded in the audit entry.
            timeout: Deadline in seconds. Defaults to the agent policy's
                ``max_execution_time``; a value of 0 or less disables it.
            risk: Effective risk of the call, recorded in the audit entry.

        Returns:
            The tool outcome. Failures are reported through ``success=False``.
        """
        tool = self._registry.find(call.name)
        if tool is None:
            logger.info("Model requested unknown tool '%s'", call.name)
            result = ToolResult(success=False, error=f"unknown tool: {call.name}", execution_time=0.0)
            await self._record(call, result, agent=agent, session_id=session_id, risk=risk)
            return result

        if timeout is None:
            timeout = agent.configuration.security_policy.max_execution_time

        logger.debug("Dispatching tool '%s' (call_id=%s, timeout=%s)", call.name, call.id, timeout)
        started = time.monotonic()
        task = asyncio.ensure_future(tool.invoke(call.arguments))
        try:
            if timeout and timeout > 0:
                output = await asyncio.wait_for(asyncio.shield(task), timeout)
            else:
                output = await asyncio.shield(task)
            result = ToolResult(success=True, output=_as_text(output), execution_time=time.monotonic() - started)
        except asyncio.TimeoutError as exc:
            if task.done() and not task.cancelled() and task.exception() is not None:
                # The handler itself raised TimeoutError.
                result = self._failure(call, exc, started)
            else:
                logger.warning("Tool '%s' exceeded its %.1fs deadline", call.name, timeout)
                self._abandon(task)
                result = ToolResult(success=False, error=TIMED_OUT, execution_time=time.monotonic() - started)
        except asyncio.CancelledError:
            logger.info("Dispatch of tool '%s' cancelled; recording outcome when it finishes", call.name)
            self._abandon(
                task,
                on_done=lambda t: self._record_late(
                    t, call, agent=agent, session_id=session_id, risk=risk, started=started
                ),
            )
            raise
        except Exception as exc:
            result = self._failure(call, exc, started)

        await self._record(call, result, agent=agent, session_id=session_id, risk=risk)
        return result

    async def drain(self) -> None:
        """Wait for abandoned handlers and the audit writes they schedule."""
        while self._abandoned or self._pending_writes:
            pending = [f for f in (*self._abandoned, *self._pending_writes) if not f.done()]
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            else:
                # Done callbacks have not run yet.
                await asyncio.sleep(0)

    def _failure(self, call: ToolCall, exc: BaseException, started: float) -> ToolResult:
        logger.info("Tool '%s' failed: %s", call.name, exc)
        message = str(exc) or exc.__class__.__name__
        return ToolResult(success=False, error=message, execution_time=time.monotonic() - started)

    def _abandon(self, task: asyncio.Future, on_done=None) -> None:
        # A task stays in _abandoned until its late audit write, if any, is scheduled.
        def finished(t: asyncio.Future) -> None:
            try:
                if on_done is not None:
                    on_done(t)
            finally:
                self._abandoned.discard(t)

        task.cancel()
        self._abandoned.add(task)
        task.add_done_callback(finished)

    def _record_late(
        self,
        task: asyncio.Future,
        call: ToolCall,
        *,
        agent: Agent,
        session_id: Optional[str],
        risk: Optional[RiskLevel],
        started: float,
    ) -> None:
        elapsed = time.monotonic() - started
        if task.cancelled():
            result = ToolResult(success=False, error=CANCELLED, execution_time=elapsed)
        elif task.exception() is not None:
            exc = task.exception()
            result = ToolResult(success=False, error=str(exc) or exc.__class__.__name__, execution_time=elapsed)
        else:
            result = ToolResult(success=True, output=_as_text(task.result()), execution_time=elapsed)
        write = asyncio.ensure_future(self._record(call, result, agent=agent, session_id=session_id, risk=risk))
        self._pending_writes.add(write)
        write.add_done_callback(self._pending_writes.discard)

    async def _record(
        self,
        call: ToolCall,
        result: ToolResult,
        *,
        agent: Agent,
        session_id: Optional[str],
        risk: Optional[RiskLevel],
    ) -> None:
        if self._audit is None:
            return
        record = ToolInvocationRecord(
            agent_id=agent.id,
            agent_name=agent.name,
            session_id=session_id,
            tool_call_id=call.id,
            tool_name=call.name,
            arguments=dict(call.arguments),
            result=(result.output or "") if result.success else (result.error or ""),
            success=result.success,
            error=result.error,
            risk=risk,
            execution_time=result.execution_time,
        )
        try:
            await self._audit.append(record)
        except Exception:
            logger.warning("Failed to write audit record for tool '%s'", call.name, exc_info=True)
