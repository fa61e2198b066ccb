from __future__ import annotations

"""LangGraph execution engine.

``ExecutionEngine.execute`` drives one task from a user prompt to a terminal
``ExecutionResult``.

Execution model
---------------

The engine runs a small LangGraph state machine:

- ``think`` sends the running conversation to the model provider. A reply
  without tool calls completes the session; a reply with tool calls hands
  them to ``act``. The iteration bound is enforced here, so the provider is
  called at most ``max_iterations`` times.
- ``act`` processes the tool calls of one reply sequentially, in the order
  the model returned them. Each call is classified and checked by the
  ``AuthorizationPolicy``; a policy violation fails the whole session.
  Calls that are not auto-approved suspend on the ``ApprovalChannel`` with
  the session in ``waiting_for_approval``.
- ``finish`` is the terminal node.

Persistence
-----------

The session is created in the ``SessionRepository`` before the first
provider call and updated after every appended step and status change.
Storage failures are logged and reported as ``ExecutionResult.warnings``;
they never abort the in-memory session.

Cancellation
------------

``cancel(session_id)`` cancels the task running that session. ``execute``
then records the session as ``cancelled`` and returns normally. When the
caller cancels the task itself, the session is recorded as ``cancelled`` and
``CancelledError`` propagates.
"""

import asyncio
import json
import logging
from typing import Dict, List, Optional, Set

from langgraph.graph import END, StateGraph

from ..errors import IterationLimitError, SessionAlreadyRunningError, SessionClosedError, StorageError
from ..policy.models import ProposedAction
from ..schemas.domain import (
    Agent,
    Approval,
    ApprovalDecision,
    ExecutionErrorKind,
    ExecutionResult,
    ExecutionSession,
    ExecutionStatus,
    ExecutionStepType,
    ToolCall,
)
from ..schemas.messages import ChatMessage, MessageRole, ModelResponse
from ..tools.dispatcher import ToolDispatcher
from .models import EngineDeps, _LoopState, _RunContext
from .streaming import collect_stream

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


class ExecutionEngine:
    """Run agent tasks against a model provider with policy-gated tool use."""

    def __init__(
        self,
        deps: EngineDeps,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        stream_responses: bool = False,
    ) -> None:
        """
        Initialize the ExecutionEngine.

        Args:
            deps: The runtime collaborators (provider, registry, repositories, etc.).
            max_iterations: Iteration bound for agents that do not set their own.
            stream_responses: Use the streaming provider API for agents that do
                not set their own preference.
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._deps = deps
        self._max_iterations = max_iterations
        self._stream = stream_responses
        self._dispatcher = ToolDispatcher(deps.registry, deps.audit_log)
        self._active: Dict[str, asyncio.Task] = {}
        self._cancel_requested: Set[str] = set()
        self._graph = self._build_graph()

    @property
    def deps(self) -> EngineDeps:
        return self._deps

    @property
    def dispatcher(self) -> ToolDispatcher:
        return self._dispatcher

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    @property
    def stream_responses(self) -> bool:
        return self._stream

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        g: StateGraph = StateGraph(_LoopState)
        g.add_node("think", self._node_think)
        g.add_node("act", self._node_act)
        g.add_node("finish", self._node_finish)

        g.set_entry_point("think")
        g.add_conditional_edges("think", self._route, {"act": "act", "finish": "finish"})
        g.add_conditional_edges("act", self._route_after_act, {"think": "think", "finish": "finish"})
        g.add_edge("finish", END)
        return g.compile()

    def is_running(self, session_id: str) -> bool:
        return session_id in self._active

    def cancel(self, session_id: str) -> bool:
        """
        Cancel the in-flight execution of a session.

        Returns:
            True if a running execution was found and cancelled.
        """
        task = self._active.get(session_id)
        if task is None or task.done():
            return False
        logger.info("Cancellation requested for session %s", session_id)
        self._cancel_requested.add(session_id)
        task.cancel()
        return True

    async def cancel_unstarted(self, agent: Agent, session: ExecutionSession) -> ExecutionResult:
        """Record a session that was cancelled before ``execute`` picked it up."""
        if session.id in self._active:
            raise SessionAlreadyRunningError(session.id)
        if session.is_terminal:
            raise SessionClosedError(session.id)
        ctx = _RunContext(agent=agent, session=session, messages=[], max_iterations=0, stream=False)
        logger.info("Session %s cancelled before it started", session.id)
        await self._persist(ctx, create=True)
        await self._fail(ctx, ExecutionStatus.cancelled, "Execution cancelled", ExecutionErrorKind.cancelled)
        result = session.result
        result.warnings = list(ctx.warnings)
        return result

    async def execute(
        self,
        agent: Agent,
        user_prompt: str,
        *,
        image_data: Optional[bytes] = None,
        session: Optional[ExecutionSession] = None,
    ) -> ExecutionResult:
        """
        Execute a task for an agent until it completes, fails or is cancelled.

        Args:
            agent: The agent to run. The engine only reads it.
            user_prompt: The natural-language task.
            image_data: Optional image attached to the user message.
            session: Optional pre-built session (e.g. when the caller needs the
                id before execution starts). It must be fresh and running.

        Returns:
            The terminal result. The full step trace stays on the session.

        Raises:
            SessionAlreadyRunningError: The session is already being executed.
            SessionClosedError: The supplied session already reached a terminal status.
        """
        if session is None:
            session = ExecutionSession(agent_id=agent.id, user_prompt=user_prompt)
        if session.id in self._active:
            raise SessionAlreadyRunningError(session.id)
        if session.is_terminal:
            raise SessionClosedError(session.id)

        task = asyncio.current_task()
        self._active[session.id] = task

        cfg = agent.configuration
        messages: List[ChatMessage] = []
        if cfg.system_prompt:
            messages.append(ChatMessage(role=MessageRole.system, content=cfg.system_prompt))
        messages.append(ChatMessage.user(user_prompt, image_data=image_data))

        ctx = _RunContext(
            agent=agent,
            session=session,
            messages=messages,
            max_iterations=cfg.max_iterations or self._max_iterations,
            stream=cfg.stream if cfg.stream is not None else self._stream,
        )
        logger.info(
            "Starting session %s for agent '%s' (%s/%s, max_iterations=%d)",
            session.id,
            agent.name,
            cfg.provider.value,
            cfg.model,
            ctx.max_iterations,
        )

        try:
            await self._persist(ctx, create=True)
            state: _LoopState = {"ctx": ctx, "iteration": 0, "pending_calls": []}
            await self._graph.ainvoke(state, config={"recursion_limit": 2 * ctx.max_iterations + 5})
        except asyncio.CancelledError:
            requested = session.id in self._cancel_requested
            if requested and task is not None:
                task.uncancel()
            await self._fail(ctx, ExecutionStatus.cancelled, "Execution cancelled", ExecutionErrorKind.cancelled)
            if not requested:
                raise
        finally:
            self._active.pop(session.id, None)
            self._cancel_requested.discard(session.id)

        result = session.result
        if result is None:
            await self._fail(ctx, ExecutionStatus.failed, "Execution ended unexpectedly", ExecutionErrorKind.provider_failure)
            result = session.result
        result.warnings = list(ctx.warnings)
        logger.info("Session %s finished with status %s", session.id, session.status.value)
        return result

    async def _node_think(self, state: _LoopState) -> _LoopState:
        """Call the model provider once and record its reply."""
        ctx = state["ctx"]
        if state["iteration"] >= ctx.max_iterations:
            err = IterationLimitError(ctx.max_iterations)
            logger.warning("Session %s: %s", ctx.session.id, err)
            await self._add_step(ctx, ExecutionStepType.error, str(err))
            await self._fail(ctx, ExecutionStatus.failed, str(err), ExecutionErrorKind.iteration_exhausted)
            state["_finished"] = True
            return state

        state["iteration"] += 1
        try:
            reply = await self._request(ctx)
        except Exception as exc:
            logger.error("Session %s: model provider failed: %s", ctx.session.id, exc)
            message = f"Provider error: {exc}"
            await self._add_step(ctx, ExecutionStepType.error, message)
            await self._fail(ctx, ExecutionStatus.failed, message, ExecutionErrorKind.provider_failure)
            state["_finished"] = True
            return state

        if reply.usage is not None:
            ctx.usage = reply.usage if ctx.usage is None else ctx.usage + reply.usage

        if not reply.tool_calls:
            await self._add_step(ctx, ExecutionStepType.response, reply.content)
            ctx.messages.append(ChatMessage.assistant(reply.content))
            await self._complete(ctx, reply.content)
            state["_finished"] = True
            return state

        if reply.content:
            await self._add_step(ctx, ExecutionStepType.thinking, reply.content)
        ctx.messages.append(ChatMessage.assistant(reply.content, reply.tool_calls))
        state["pending_calls"] = list(reply.tool_calls)
        return state

    async def _node_act(self, state: _LoopState) -> _LoopState:
        """Run the tool calls of the latest reply, one at a time."""
        ctx = state["ctx"]
        calls = state["pending_calls"]
        state["pending_calls"] = []
        for call in calls:
            if not await self._run_tool_call(ctx, call):
                state["_finished"] = True
                break
        return state

    async def _node_finish(self, state: _LoopState) -> _LoopState:
        """Terminal node; the session already holds its result."""
        return state

    def _route(self, state: _LoopState) -> str:
        if state.get("_finished"):
            return "finish"
        return "act"

    def _route_after_act(self, state: _LoopState) -> str:
        if state.get("_finished"):
            return "finish"
        return "think"

    async def _request(self, ctx: _RunContext) -> ModelResponse:
        cfg = ctx.agent.configuration
        tools = self._deps.registry.schemas_for(cfg.enabled_tools)
        kwargs = dict(
            provider=cfg.provider,
            model=cfg.model,
            messages=list(ctx.messages),
            tools=tools or None,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
        )
        if ctx.stream:
            return await collect_stream(self._deps.provider.send_message_stream(**kwargs))
        return await self._deps.provider.send_message(**kwargs)

    async def _run_tool_call(self, ctx: _RunContext, call: ToolCall) -> bool:
        """
        Gate and dispatch one tool call.

        Returns:
            False if the session reached a terminal status and the remaining
            calls must not run.
        """
        session = ctx.session
        policy = ctx.agent.configuration.security_policy
        await self._add_step(
            ctx,
            ExecutionStepType.tool_call,
            call.name,
            {"tool_call_id": call.id, "tool_name": call.name, "arguments": json.dumps(call.arguments)},
        )

        tool = self._deps.registry.find(call.name)
        action = ProposedAction.from_tool_call(call, tool_risk=tool.risk_level if tool is not None else None)
        decision = self._deps.authorization.decide(action, policy)

        if decision.block:
            message = decision.block_reason or "Action rejected by security policy"
            await self._add_step(
                ctx,
                ExecutionStepType.error,
                message,
                {"tool_call_id": call.id, "tool_name": call.name, "risk": decision.risk.value},
            )
            await self._fail(ctx, ExecutionStatus.failed, message, ExecutionErrorKind.policy_violation)
            return False

        if decision.require_approval:
            approval = self._deps.approvals.open(
                Approval(
                    session_id=session.id,
                    tool_call_id=call.id,
                    tool_name=call.name,
                    action=action.text,
                    risk=decision.risk,
                    reason=f"{decision.risk.value} risk action requires approval",
                )
            )
            try:
                await self._add_step(
                    ctx,
                    ExecutionStepType.approval,
                    f"Approval required for {call.name}: {action.text}",
                    {
                        "approval_id": approval.id,
                        "tool_call_id": call.id,
                        "tool_name": call.name,
                        "risk": decision.risk.value,
                    },
                )
                await self._transition(ctx, ExecutionStatus.waiting_for_approval)
                resolved = await self._deps.approvals.wait(approval.id)
            finally:
                self._deps.approvals.discard(approval.id)

            if resolved.decision != ApprovalDecision.approved:
                message = f"Tool call '{call.name}' was rejected"
                if resolved.decided_by:
                    message += f" by {resolved.decided_by}"
                await self._fail(ctx, ExecutionStatus.cancelled, message, ExecutionErrorKind.rejected)
                return False
            await self._transition(ctx, ExecutionStatus.running)
        else:
            logger.info("Session %s: auto-approved '%s' (risk=%s)", session.id, call.name, decision.risk.value)

        result = await self._dispatcher.dispatch(
            call,
            agent=ctx.agent,
            session_id=session.id,
            timeout=policy.max_execution_time,
            risk=decision.risk,
        )
        content = result.as_message_content()
        metadata = {"tool_call_id": call.id, "tool_name": call.name, "success": "true" if result.success else "false"}
        if result.execution_time is not None:
            metadata["execution_time"] = f"{result.execution_time:.3f}"
        await self._add_step(ctx, ExecutionStepType.tool_result, content, metadata)
        ctx.messages.append(ChatMessage.tool_result(call, content))
        return True

    def _usage_fields(self, ctx: _RunContext) -> Dict[str, Optional[float]]:
        if ctx.usage is None:
            return {"tokens_used": None, "cost_estimate": None}
        pricing = self._deps.pricing.get(ctx.agent.configuration.model)
        return {
            "tokens_used": ctx.usage.total_tokens,
            "cost_estimate": pricing.estimate(ctx.usage) if pricing is not None else None,
        }

    async def _complete(self, ctx: _RunContext, output: str) -> None:
        ctx.session.finish(ExecutionStatus.completed, ExecutionResult(success=True, output=output, **self._usage_fields(ctx)))
        await self._persist(ctx)

    async def _fail(self, ctx: _RunContext, status: ExecutionStatus, error: str, kind: ExecutionErrorKind) -> None:
        if ctx.session.is_terminal:
            return
        result = ExecutionResult(success=False, error=error, error_kind=kind, **self._usage_fields(ctx))
        ctx.session.finish(status, result)
        await self._persist(ctx)

    async def _add_step(
        self,
        ctx: _RunContext,
        type: ExecutionStepType,
        content: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        ctx.session.add_step(type, content, metadata)
        await self._persist(ctx)

    async def _transition(self, ctx: _RunContext, status: ExecutionStatus) -> None:
        logger.info("Session %s: %s -> %s", ctx.session.id, ctx.session.status.value, status.value)
        ctx.session.transition(status)
        await self._persist(ctx)

    async def _persist(self, ctx: _RunContext, *, create: bool = False) -> None:
        repo = self._deps.sessions
        try:
            if create:
                await repo.create(ctx.session)
            else:
                await repo.update(ctx.session)
        except StorageError as exc:
            logger.warning("Session %s: failed to persist snapshot: %s", ctx.session.id, exc)
            ctx.warnings.append(f"storage: {exc}")
