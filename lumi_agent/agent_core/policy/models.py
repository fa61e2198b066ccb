from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import PolicyViolation
from ..schemas.domain import RiskLevel, ToolCall

TARGET_ARGUMENT_KEYS: Tuple[str, ...] = ("path", "target", "destination", "source", "cwd")


@dataclass(frozen=True)
class ProposedAction:
    """
    The policy-facing view of a tool call.

    Attributes:
        text: Command-like text that the classifier and gate match against.
        target: Optional filesystem path the action operates on.
        tool_name: Name of the tool the model asked for.
        tool_risk: Risk level declared by the registered tool, if known.
    """
    text: str
    target: Optional[str]
    tool_name: str
    tool_risk: Optional[RiskLevel] = None

    @classmethod
    def from_tool_call(cls, call: ToolCall, *, tool_risk: Optional[RiskLevel] = None) -> "ProposedAction":
        """
        Derive the action text and target from a tool call.

        Shell-style tools carry a ``command`` argument which is used verbatim.
        Every other tool is described by its name followed by its argument
        values, so whitelist entries can name tools directly.
        """
        args = call.arguments
        command = args.get("command")
        if command:
            text = command
        else:
            text = " ".join([call.name, *[v for v in args.values() if v]])

        target: Optional[str] = None
        for key in TARGET_ARGUMENT_KEYS:
            if args.get(key):
                target = args[key]
                break
        return cls(text=text, target=target, tool_name=call.name, tool_risk=tool_risk)


@dataclass(frozen=True)
class PolicyDecision:
    """
    Result of a policy evaluation for a specific action.

    Attributes:
        risk: The effective risk level of the action.
        require_approval: Whether human approval is needed before execution.
        block: Whether the action is rejected outright.
        violation: The policy violation when ``block`` is set.
    """
    risk: RiskLevel
    require_approval: bool
    block: bool = False
    violation: Optional[PolicyViolation] = None

    @property
    def block_reason(self) -> Optional[str]:
        return str(self.violation) if self.violation is not None else None
