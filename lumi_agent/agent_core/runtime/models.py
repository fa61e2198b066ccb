from __future__ import annotations

"""Runtime dependency bundle and LangGraph state types.

- ``EngineDeps`` collects the collaborators the engine needs.
- ``_RunContext`` holds the per-session mutable data owned by one ``execute``
  call (session, conversation, usage).
- ``_LoopState`` is the state passed between LangGraph nodes.
"""

from dataclasses import dataclass, field
from typing import Dict, List, NotRequired, Optional, Required, TypedDict

from ..policy.authorization import AuthorizationPolicy
from ..providers.base import ModelProvider
from ..repos.interfaces import AuditLog, SessionRepository
from ..schemas.domain import Agent, ExecutionSession, ToolCall
from ..schemas.messages import ChatMessage, ModelPricing, Usage
from ..tools.registry import ToolRegistry
from .approvals import ApprovalChannel


@dataclass(frozen=True)
class EngineDeps:
    """Dependency bundle for ``ExecutionEngine``.

    Built by application wiring code (see ``agent_core.factory``) or by tests.
    The registry, repositories, audit log and approval channel may be shared
    by any number of concurrently running sessions.
    """

    provider: ModelProvider
    registry: ToolRegistry
    sessions: SessionRepository
    audit_log: Optional[AuditLog] = None
    approvals: ApprovalChannel = field(default_factory=ApprovalChannel)
    authorization: AuthorizationPolicy = field(default_factory=AuthorizationPolicy)
    pricing: Dict[str, ModelPricing] = field(default_factory=dict)


@dataclass
class _RunContext:
    agent: Agent
    session: ExecutionSession
    messages: List[ChatMessage]
    max_iterations: int
    stream: bool
    usage: Optional[Usage] = None
    warnings: List[str] = field(default_factory=list)


class _LoopState(TypedDict):
    """Mutable LangGraph state for a single ``execute`` call.

    Required keys:

    - ``ctx``: the run context.
    - ``iteration``: number of provider calls made so far.
    - ``pending_calls``: tool calls of the latest reply, processed in order.

    Optional keys:

    - ``_finished``: set once the session reached a terminal status.
    """

    ctx: Required[_RunContext]
    iteration: Required[int]
    pending_calls: Required[List[ToolCall]]
    _finished: NotRequired[bool]
