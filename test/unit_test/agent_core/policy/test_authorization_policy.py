from __future__ import annotations

import pytest

from lumi_agent.agent_core.errors import (
    CommandBlacklistedError,
    CommandNotWhitelistedError,
    PolicyViolation,
    SudoNotAllowedError,
)
from lumi_agent.agent_core.policy.authorization import AuthorizationPolicy
from lumi_agent.agent_core.policy.models import ProposedAction
from lumi_agent.agent_core.schemas.domain import DEFAULT_SECURITY_POLICY, RiskLevel, SecurityPolicy, ToolCall


@pytest.fixture
def gate() -> AuthorizationPolicy:
    return AuthorizationPolicy()


def test_blacklist_wins_over_whitelist(gate: AuthorizationPolicy) -> None:
    policy = SecurityPolicy(whitelisted_commands={"rm"}, allow_sudo=True)
    with pytest.raises(CommandBlacklistedError) as ei:
        gate.validate_command("rm -rf /", policy)
    assert ei.value.command == "rm -rf /"


def test_blacklist_checked_before_sudo(gate: AuthorizationPolicy) -> None:
    with pytest.raises(CommandBlacklistedError):
        gate.validate_command("sudo rm -rf /", SecurityPolicy(allow_sudo=False))


def test_sudo_rejected_unless_allowed(gate: AuthorizationPolicy) -> None:
    with pytest.raises(SudoNotAllowedError):
        gate.validate_command("sudo ls", SecurityPolicy(allow_sudo=False))
    gate.validate_command("sudo ls", SecurityPolicy(allow_sudo=True))


def test_whitelist_requires_matching_prefix(gate: AuthorizationPolicy) -> None:
    policy = SecurityPolicy(whitelisted_commands={"ls", "git status"})
    gate.validate_command("ls -la", policy)
    gate.validate_command("git status --short", policy)
    with pytest.raises(CommandNotWhitelistedError) as ei:
        gate.validate_command("git push origin main", policy)
    assert ei.value.command == "git"


def test_empty_whitelist_means_no_restriction(gate: AuthorizationPolicy) -> None:
    gate.validate_command("python script.py", SecurityPolicy())


def test_violations_share_a_base_class(gate: AuthorizationPolicy) -> None:
    with pytest.raises(PolicyViolation):
        gate.validate_command("mkfs /dev/sda1", DEFAULT_SECURITY_POLICY)


def test_default_policy_is_used_when_none_given() -> None:
    gate = AuthorizationPolicy(SecurityPolicy(blacklisted_commands={"shutdown"}))
    with pytest.raises(CommandBlacklistedError):
        gate.validate_command("shutdown now")


@pytest.mark.parametrize(
    "risk,require,threshold,expected",
    [
        (RiskLevel.low, True, RiskLevel.medium, False),
        (RiskLevel.medium, False, RiskLevel.medium, True),
        (RiskLevel.high, False, RiskLevel.medium, False),
        (RiskLevel.low, False, RiskLevel.low, True),
        (RiskLevel.critical, False, RiskLevel.critical, True),
    ],
)
def test_should_auto_approve(gate: AuthorizationPolicy, risk, require, threshold, expected) -> None:
    policy = SecurityPolicy(require_approval=require, auto_approve_threshold=threshold)
    assert gate.should_auto_approve(risk, policy) is expected


def test_decide_blocks_with_violation(gate: AuthorizationPolicy) -> None:
    action = ProposedAction(text="sudo reboot", target=None, tool_name="execute_command")
    decision = gate.decide(action, SecurityPolicy())
    assert decision.block
    assert isinstance(decision.violation, SudoNotAllowedError)
    assert decision.risk == RiskLevel.high
    assert "Sudo" in (decision.block_reason or "")


def test_decide_uses_higher_of_classifier_and_tool_risk(gate: AuthorizationPolicy) -> None:
    policy = SecurityPolicy(require_approval=False, auto_approve_threshold=RiskLevel.medium)
    low = gate.decide(ProposedAction(text="ls", target=None, tool_name="t", tool_risk=RiskLevel.low), policy)
    assert low.risk == RiskLevel.low
    assert not low.require_approval

    high = gate.decide(ProposedAction(text="ls", target=None, tool_name="t", tool_risk=RiskLevel.high), policy)
    assert high.risk == RiskLevel.high
    assert high.require_approval


def test_proposed_action_prefers_command_argument() -> None:
    call = ToolCall(name="execute_command", arguments={"command": "ls -la", "cwd": "/etc"})
    action = ProposedAction.from_tool_call(call)
    assert action.text == "ls -la"
    assert action.target == "/etc"


def test_proposed_action_describes_other_tools_by_name_and_values() -> None:
    call = ToolCall(name="read_file", arguments={"path": "/Users/me/notes.txt"})
    action = ProposedAction.from_tool_call(call, tool_risk=RiskLevel.low)
    assert action.text == "read_file /Users/me/notes.txt"
    assert action.target == "/Users/me/notes.txt"
    assert action.tool_risk == RiskLevel.low
