"""Execution runtime.

- ``ExecutionEngine``: LangGraph state machine driving model turns, policy
  gating, approvals and tool dispatch for one session at a time per id.
- ``ApprovalChannel``: future-backed hand-off of approve/reject decisions.
- ``EngineDeps``: dependency bundle injected into the engine.
- ``collect_stream``: reassembles streamed replies into a ``ModelResponse``.
"""

from .approvals import ApprovalChannel
from .engine import ExecutionEngine
from .models import EngineDeps
from .streaming import ToolCallAssembler, collect_stream

__all__ = [
    "ApprovalChannel",
    "EngineDeps",
    "ExecutionEngine",
    "ToolCallAssembler",
    "collect_stream",
]
