from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from pydantic import Field, field_validator

from ..errors import SessionClosedError
from .base import BaseSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


def stringify_arguments(raw: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Normalize a tool argument map so every value is a string.

    Strings pass through unchanged; any other JSON value is re-encoded so
    tools receive exactly what the model produced.
    """
    out: Dict[str, str] = {}
    for key, value in (raw or {}).items():
        if isinstance(value, str):
            out[str(key)] = value
        elif value is None:
            out[str(key)] = ""
        else:
            out[str(key)] = json.dumps(value, default=str)
    return out


class RiskLevel(str, Enum):
    """Ordinal risk classification. Comparisons use declaration order."""

    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    @staticmethod
    def _coerce(other: Any) -> Optional["RiskLevel"]:
        if isinstance(other, RiskLevel):
            return other
        if isinstance(other, str):
            try:
                return RiskLevel(other)
            except ValueError:
                return None
        return None

    def __lt__(self, other: Any) -> bool:
        o = RiskLevel._coerce(other)
        if o is None:
            return NotImplemented
        return self.rank < o.rank

    def __le__(self, other: Any) -> bool:
        o = RiskLevel._coerce(other)
        if o is None:
            return NotImplemented
        return self.rank <= o.rank

    def __gt__(self, other: Any) -> bool:
        o = RiskLevel._coerce(other)
        if o is None:
            return NotImplemented
        return self.rank > o.rank

    def __ge__(self, other: Any) -> bool:
        o = RiskLevel._coerce(other)
        if o is None:
            return NotImplemented
        return self.rank >= o.rank


_RISK_ORDER: List[RiskLevel] = [RiskLevel.low, RiskLevel.medium, RiskLevel.high, RiskLevel.critical]


class AIProvider(str, Enum):
    openai = "openai"
    anthropic = "anthropic"
    gemini = "gemini"
    ollama = "ollama"


class AgentCapability(str, Enum):
    file_operations = "file_operations"
    web_search = "web_search"
    code_execution = "code_execution"
    system_commands = "system_commands"
    database_access = "database_access"
    network_requests = "network_requests"

    @property
    def requires_approval(self) -> bool:
        return self in {
            AgentCapability.file_operations,
            AgentCapability.system_commands,
            AgentCapability.database_access,
        }


class AgentStatus(str, Enum):
    idle = "idle"
    running = "running"
    paused = "paused"
    error = "error"
    stopped = "stopped"


class ExecutionStepType(str, Enum):
    thinking = "thinking"
    tool_call = "tool_call"
    tool_result = "tool_result"
    response = "response"
    error = "error"
    approval = "approval"

    @property
    def display_name(self) -> str:
        return _STEP_DISPLAY_NAMES[self]


_STEP_DISPLAY_NAMES: Dict[ExecutionStepType, str] = {
    ExecutionStepType.thinking: "Thinking",
    ExecutionStepType.tool_call: "Tool Call",
    ExecutionStepType.tool_result: "Tool Result",
    ExecutionStepType.response: "Response",
    ExecutionStepType.error: "Error",
    ExecutionStepType.approval: "Approval Required",
}


class ExecutionStatus(str, Enum):
    running = "running"
    waiting_for_approval = "waiting_for_approval"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in {ExecutionStatus.running, ExecutionStatus.waiting_for_approval}


class ExecutionErrorKind(str, Enum):
    """Why a session ended without success."""

    policy_violation = "policy_violation"
    provider_failure = "provider_failure"
    iteration_exhausted = "iteration_exhausted"
    rejected = "rejected"
    cancelled = "cancelled"


class ApprovalDecision(str, Enum):
    approved = "approved"
    rejected = "rejected"


class SecurityPolicy(BaseSchema):
    """
    Per-agent security policy.

    Check precedence is fixed: blacklist, then sudo, then whitelist. The
    auto-approve threshold only applies when ``require_approval`` is off.
    """

    allow_sudo: bool = False
    require_approval: bool = True
    whitelisted_commands: Set[str] = Field(
        default_factory=set,
        description="If non-empty, an action must start with one of these prefixes.",
    )
    blacklisted_commands: Set[str] = Field(
        default_factory=lambda: {"rm -rf /", "dd if=/dev/zero", ":(){ :|:& };:"},
        description="Substrings that reject an action regardless of any other setting.",
    )
    restricted_paths: Set[str] = Field(
        default_factory=lambda: {"/System", "/Library", "/usr", "/bin", "/sbin"},
        description="Additional path prefixes treated as sensitive targets.",
    )
    max_execution_time: float = Field(default=300.0, ge=0.0, description="Per-tool deadline in seconds; 0 disables it.")
    auto_approve_threshold: RiskLevel = RiskLevel.low


DEFAULT_SECURITY_POLICY = SecurityPolicy(
    allow_sudo=False,
    require_approval=True,
    whitelisted_commands=set(),
    blacklisted_commands={
        "rm -rf /",
        "dd if=/dev/zero",
        ":(){ :|:& };:",
        "chmod -R 777",
        "mkfs",
        "format",
    },
    restricted_paths={"/System", "/Library", "/usr/bin", "/usr/sbin", "/bin", "/sbin"},
    max_execution_time=300.0,
    auto_approve_threshold=RiskLevel.low,
)


class AgentConfiguration(BaseSchema):
    provider: AIProvider
    model: str
    system_prompt: Optional[str] = None
    temperature: Optional[float] = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=4096, ge=1)
    enabled_tools: List[str] = Field(default_factory=list)
    security_policy: SecurityPolicy = Field(default_factory=SecurityPolicy)

    max_iterations: Optional[int] = Field(
        default=None, ge=1, description="Model/tool round-trip bound for one session; the engine default applies when unset."
    )
    stream: Optional[bool] = Field(default=None, description="Use the streaming provider API; the engine default applies when unset.")


class Agent(BaseSchema):
    id: str = Field(default_factory=_new_id)
    name: str
    configuration: AgentConfiguration
    capabilities: List[AgentCapability] = Field(default_factory=list)
    status: AgentStatus = AgentStatus.idle
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class ToolCall(BaseSchema):
    id: str = Field(default_factory=_new_id)
    name: str
    arguments: Dict[str, str] = Field(default_factory=dict)

    @field_validator("arguments", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Dict[str, str]:
        if value is None:
            return {}
        if isinstance(value, dict):
            return stringify_arguments(value)
        return value


class ToolResult(BaseSchema):
    success: bool
    output: Optional[str] = None
    error: Optional[str] = None
    execution_time: Optional[float] = None

    def as_message_content(self) -> str:
        """Render the result the way it is shown to the model."""
        if self.success:
            return self.output or ""
        return f"Error: {self.error or 'unknown error'}"


class ExecutionStep(BaseSchema):
    id: str = Field(default_factory=_new_id)
    type: ExecutionStepType
    content: str
    timestamp: datetime = Field(default_factory=_utc_now)
    metadata: Optional[Dict[str, str]] = None


class ExecutionResult(BaseSchema):
    success: bool
    output: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ExecutionErrorKind] = None
    tokens_used: Optional[int] = None
    cost_estimate: Optional[float] = None
    warnings: List[str] = Field(default_factory=list)


class ExecutionSession(BaseSchema):
    """One end-to-end attempt at satisfying a user prompt.

    Only the engine mutates a session, through ``add_step``, ``transition``
    and ``finish``. All three refuse to touch a terminal session.
    """

    id: str = Field(default_factory=_new_id)
    agent_id: str
    user_prompt: str
    steps: List[ExecutionStep] = Field(default_factory=list)
    result: Optional[ExecutionResult] = None
    status: ExecutionStatus = ExecutionStatus.running
    started_at: datetime = Field(default_factory=_utc_now)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def add_step(
        self,
        type: ExecutionStepType,
        content: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ExecutionStep:
        if self.is_terminal:
            raise SessionClosedError(self.id)
        step = ExecutionStep(type=type, content=content, metadata=metadata)
        self.steps.append(step)
        return step

    def transition(self, status: ExecutionStatus) -> None:
        if self.is_terminal:
            raise SessionClosedError(self.id)
        self.status = status

    def finish(self, status: ExecutionStatus, result: ExecutionResult) -> None:
        if not status.is_terminal:
            raise ValueError(f"not a terminal status: {status}")
        self.transition(status)
        self.result = result
        self.completed_at = _utc_now()

    def steps_of(self, type: ExecutionStepType) -> List[ExecutionStep]:
        return [s for s in self.steps if s.type == type]


class Approval(BaseSchema):
    id: str = Field(default_factory=_new_id)
    session_id: str
    tool_call_id: str
    tool_name: str
    action: str

    risk: RiskLevel
    reason: str
    requested_at: datetime = Field(default_factory=_utc_now)

    decision: Optional[ApprovalDecision] = None
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None


class ToolInvocationRecord(BaseSchema):
    """Audit record of one tool dispatch, written whatever the outcome."""

    id: str = Field(default_factory=_new_id)
    agent_id: str
    agent_name: Optional[str] = None
    session_id: Optional[str] = None
    tool_call_id: Optional[str] = None

    tool_name: str
    arguments: Dict[str, str] = Field(default_factory=dict)
    result: str = ""
    success: bool
    error: Optional[str] = None
    risk: Optional[RiskLevel] = None
    execution_time: Optional[float] = None

    timestamp: datetime = Field(default_factory=_utc_now)
