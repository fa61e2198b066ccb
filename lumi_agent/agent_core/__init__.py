"""Agent execution core: engine, security policy, tools and persistence.

Design overview
---------------

One ``ExecutionEngine.execute`` call turns a user prompt into a terminal
``ExecutionResult``:

- the model provider is asked for the next reply, with the agent's enabled
  tools attached;
- every tool call the model issues is classified by ``assess_risk`` and
  checked by ``AuthorizationPolicy``. Violations end the session, and calls
  above the auto-approve threshold wait on the ``ApprovalChannel``;
- approved calls run through ``ToolDispatcher`` under the policy deadline,
  and their results are fed back to the model.

Each step is appended to the ``ExecutionSession`` trace and persisted through
the ``SessionRepository``; every dispatch is written to the ``AuditLog``.

Typical usage
-------------

Use ``agent_core.factory.build_deps`` and ``build_engine`` to wire the engine,
then ``await engine.execute(agent, prompt)``.
"""

from .errors import AgentCoreError, PolicyViolation, ProviderError, StorageError
from .factory import build_deps, build_engine
from .runtime import ApprovalChannel, EngineDeps, ExecutionEngine

__all__ = [
    "AgentCoreError",
    "ApprovalChannel",
    "EngineDeps",
    "ExecutionEngine",
    "PolicyViolation",
    "ProviderError",
    "StorageError",
    "build_deps",
    "build_engine",
]
