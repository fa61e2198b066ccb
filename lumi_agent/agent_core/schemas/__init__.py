"""Domain and provider-facing schemas for the agent core."""

from .base import BaseSchema
from .domain import (
    DEFAULT_SECURITY_POLICY,
    Agent,
    AgentCapability,
    AgentConfiguration,
    AgentStatus,
    AIProvider,
    Approval,
    ApprovalDecision,
    ExecutionErrorKind,
    ExecutionResult,
    ExecutionSession,
    ExecutionStatus,
    ExecutionStep,
    ExecutionStepType,
    RiskLevel,
    SecurityPolicy,
    ToolCall,
    ToolInvocationRecord,
    ToolResult,
    stringify_arguments,
)
from .messages import (
    ChatMessage,
    MessageRole,
    ModelPricing,
    ModelResponse,
    StreamChunk,
    ToolCallChunk,
    ToolParameters,
    ToolProperty,
    ToolSchema,
    Usage,
)

__all__ = [
    "BaseSchema",
    "DEFAULT_SECURITY_POLICY",
    "Agent",
    "AgentCapability",
    "AgentConfiguration",
    "AgentStatus",
    "AIProvider",
    "Approval",
    "ApprovalDecision",
    "ChatMessage",
    "ExecutionErrorKind",
    "ExecutionResult",
    "ExecutionSession",
    "ExecutionStatus",
    "ExecutionStep",
    "ExecutionStepType",
    "MessageRole",
    "ModelPricing",
    "ModelResponse",
    "RiskLevel",
    "SecurityPolicy",
    "StreamChunk",
    "ToolCall",
    "ToolCallChunk",
    "ToolInvocationRecord",
    "ToolParameters",
    "ToolProperty",
    "ToolResult",
    "ToolSchema",
    "Usage",
    "stringify_arguments",
]
