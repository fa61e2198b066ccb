"""Tool catalog and dispatch.

- ``RegisteredTool``: tool metadata plus an async handler.
- ``ToolRegistry``: name-indexed catalog shared across sessions.
- ``ToolDispatcher``: runs a tool call under a deadline, converts failures
  into ``ToolResult`` values and writes an audit record for every dispatch.
"""

from .base import RegisteredTool, ToolCategory, ToolHandler, parameters_from_model
from .builtin import build_default_registry
from .dispatcher import ToolDispatcher
from .registry import ToolRegistry

__all__ = [
    "RegisteredTool",
    "ToolCategory",
    "ToolHandler",
    "ToolDispatcher",
    "ToolRegistry",
    "build_default_registry",
    "parameters_from_model",
]
