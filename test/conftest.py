from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import httpx
import pytest

from lumi_agent.agent_core.repos.memory import InMemoryAuditLog, InMemorySessionRepository
from lumi_agent.agent_core.runtime.approvals import ApprovalChannel
from lumi_agent.agent_core.runtime.engine import ExecutionEngine
from lumi_agent.agent_core.runtime.models import EngineDeps
from lumi_agent.agent_core.policy.authorization import AuthorizationPolicy
from lumi_agent.agent_core.schemas.domain import (
    Agent,
    AgentConfiguration,
    AIProvider,
    RiskLevel,
    SecurityPolicy,
    ToolCall,
)
from lumi_agent.agent_core.schemas.messages import (
    ModelResponse,
    StreamChunk,
    ToolCallChunk,
    Usage,
)
from lumi_agent.agent_core.tools.base import RegisteredTool, ToolCategory
from lumi_agent.agent_core.tools.registry import ToolRegistry

Reply = Union[ModelResponse, Exception]


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    allowed_prefixes: Iterable[str] = (
        "http://mock",
        "https://mock",
        "http://localhost",
        "http://127.0.0.1",
        "http://test",
        "/",  # relative paths (ASGI transport)
    )

    orig_sync = httpx._client.Client.request
    orig_async = httpx._client.AsyncClient.request

    def _is_allowed(url_str: str) -> bool:
        return any(url_str.startswith(p) for p in allowed_prefixes)

    def offline_sync(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return orig_sync(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard: {url_str}")

    async def offline_async(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return await orig_async(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard (async): {url_str}")

    monkeypatch.setattr(httpx._client.Client, "request", offline_sync, raising=True)
    monkeypatch.setattr(httpx._client.AsyncClient, "request", offline_async, raising=True)


class ScriptedProvider:
    """Model provider returning pre-scripted replies in order.

    The last reply is repeated once the script runs out when ``repeat_last``
    is set; otherwise running out is an error. Every call is recorded.
    """

    def __init__(self, replies: List[Reply], *, repeat_last: bool = False) -> None:
        self._replies = list(replies)
        self._repeat_last = repeat_last
        self.calls: List[Dict[str, Any]] = []
        self.stream_closed = 0

    def _next(self, kwargs: Dict[str, Any]) -> ModelResponse:
        self.calls.append(dict(kwargs, messages=[m.model_copy(deep=True) for m in kwargs["messages"]]))
        if not self._replies:
            raise AssertionError("provider script exhausted")
        reply = self._replies[0] if (self._repeat_last and len(self._replies) == 1) else self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply.model_copy(deep=True)

    async def send_message(self, **kwargs: Any) -> ModelResponse:
        await asyncio.sleep(0)
        return self._next(kwargs)

    async def send_message_stream(self, **kwargs: Any):
        reply = self._next(kwargs)
        try:
            if reply.content:
                half = len(reply.content) // 2
                yield StreamChunk(id=reply.id, content=reply.content[:half])
                yield StreamChunk(id=reply.id, content=reply.content[half:])
            for call in reply.tool_calls:
                raw = json.dumps(call.arguments)
                mid = len(raw) // 2
                yield StreamChunk(
                    id=reply.id,
                    tool_call_chunk=ToolCallChunk(id=call.id, name=call.name, arguments_chunk=raw[:mid]),
                )
                yield StreamChunk(id=reply.id, tool_call_chunk=ToolCallChunk(id=call.id, arguments_chunk=raw[mid:]))
            yield StreamChunk(id=reply.id, finish_reason=reply.finish_reason, done=True, usage=reply.usage)
        finally:
            self.stream_closed += 1


def text_reply(content: str, *, prompt_tokens: int = 0, completion_tokens: int = 0) -> ModelResponse:
    usage = Usage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens) if prompt_tokens or completion_tokens else None
    return ModelResponse(content=content, finish_reason="stop", usage=usage)


def tool_reply(*calls: ToolCall, content: str = "") -> ModelResponse:
    return ModelResponse(content=content, tool_calls=list(calls), finish_reason="tool_calls")


class RecordingTool:
    """Async tool handler that records its arguments."""

    def __init__(self, output: str = "ok", *, error: Optional[Exception] = None, delay: float = 0.0) -> None:
        self.output = output
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, str]] = []

    async def __call__(self, arguments: Dict[str, str]) -> str:
        self.calls.append(dict(arguments))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def provider_factory() -> Callable[..., ScriptedProvider]:
    return ScriptedProvider


@pytest.fixture
def replies():
    """Helpers building scripted provider replies."""

    class _Replies:
        text = staticmethod(text_reply)
        tools = staticmethod(tool_reply)

    return _Replies


@pytest.fixture
def shell_tool() -> RecordingTool:
    return RecordingTool("file-a\nfile-b\n")


@pytest.fixture
def echo_tool() -> RecordingTool:
    return RecordingTool("echoed")


@pytest.fixture
def registry(shell_tool: RecordingTool, echo_tool: RecordingTool) -> ToolRegistry:
    return ToolRegistry(
        [
            RegisteredTool(
                name="execute_command",
                description="Run a shell command",
                category=ToolCategory.system_commands,
                risk_level=RiskLevel.low,
                handler=shell_tool,
            ),
            RegisteredTool(
                name="echo",
                description="Echo the input",
                category=ToolCategory.text_data,
                risk_level=RiskLevel.low,
                handler=echo_tool,
            ),
        ]
    )


@pytest.fixture
def sessions() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def audit_log() -> InMemoryAuditLog:
    return InMemoryAuditLog()


@pytest.fixture
def approvals() -> ApprovalChannel:
    return ApprovalChannel()


@pytest.fixture
def make_agent() -> Callable[..., Agent]:
    def _make(*, max_iterations: Optional[int] = None, stream: Optional[bool] = None, system_prompt: Optional[str] = None, **policy: Any) -> Agent:
        return Agent(
            name="test-agent",
            configuration=AgentConfiguration(
                provider=AIProvider.openai,
                model="gpt-test",
                system_prompt=system_prompt,
                security_policy=SecurityPolicy(**policy),
                max_iterations=max_iterations,
                stream=stream,
            ),
        )

    return _make


@pytest.fixture
def make_engine(registry: ToolRegistry, sessions, audit_log, approvals) -> Callable[..., ExecutionEngine]:
    def _make(provider: Any, **kwargs: Any) -> ExecutionEngine:
        deps = EngineDeps(
            provider=provider,
            registry=kwargs.pop("registry", registry),
            sessions=kwargs.pop("sessions", sessions),
            audit_log=audit_log,
            approvals=approvals,
            authorization=AuthorizationPolicy(),
            pricing=kwargs.pop("pricing", {}),
        )
        return ExecutionEngine(deps, **kwargs)

    return _make
