from __future__ import annotations

"""Security policy gate for tool actions.

``AuthorizationPolicy`` is constructed explicitly and handed to the engine.
It wraps a default ``SecurityPolicy`` used when a caller does not supply the
agent's own policy.

Check order in ``validate_command`` is fixed:

1. blacklist substring match (ignores whitelist and sudo settings),
2. sudo prefix when sudo is not allowed,
3. whitelist prefix match when a whitelist is configured.

``should_auto_approve`` is a two-layer gate: the global ``require_approval``
flag wins, and only when it is off does the risk threshold apply.
"""

import logging
from typing import Optional

from ..errors import (
    CommandBlacklistedError,
    CommandNotWhitelistedError,
    PolicyViolation,
    SudoNotAllowedError,
)
from ..schemas.domain import DEFAULT_SECURITY_POLICY, RiskLevel, SecurityPolicy
from .models import PolicyDecision, ProposedAction
from .risk import assess_risk, is_sudo

logger = logging.getLogger(__name__)


class AuthorizationPolicy:
    """Policy gate evaluating proposed actions against a ``SecurityPolicy``."""

    def __init__(self, default_policy: Optional[SecurityPolicy] = None) -> None:
        self._default = default_policy if default_policy is not None else DEFAULT_SECURITY_POLICY

    @property
    def default_policy(self) -> SecurityPolicy:
        return self._default

    def _policy(self, policy: Optional[SecurityPolicy]) -> SecurityPolicy:
        return policy if policy is not None else self._default

    def assess_risk(
        self,
        action_text: str,
        target: Optional[str] = None,
        policy: Optional[SecurityPolicy] = None,
    ) -> RiskLevel:
        return assess_risk(action_text, target, self._policy(policy))

    def validate_command(self, command: str, policy: Optional[SecurityPolicy] = None) -> None:
        """
        Validate an action against the policy lists.

        Args:
            command: The action text.
            policy: Policy to check against. Falls back to the default policy.

        Raises:
            CommandBlacklistedError: A blacklisted substring is present.
            SudoNotAllowedError: The action uses sudo and the policy forbids it.
            CommandNotWhitelistedError: A whitelist is set and no entry prefixes the action.
        """
        p = self._policy(policy)

        for blocked in p.blacklisted_commands:
            if blocked and blocked in command:
                raise CommandBlacklistedError(command)

        if is_sudo(command) and not p.allow_sudo:
            raise SudoNotAllowedError()

        if p.whitelisted_commands:
            if not any(command.startswith(entry) for entry in p.whitelisted_commands):
                leading = command.split(" ", 1)[0] if command else command
                raise CommandNotWhitelistedError(leading)

    def should_auto_approve(self, risk: RiskLevel, policy: Optional[SecurityPolicy] = None) -> bool:
        p = self._policy(policy)
        return risk <= p.auto_approve_threshold and not p.require_approval

    def decide(self, action: ProposedAction, policy: Optional[SecurityPolicy] = None) -> PolicyDecision:
        """
        Compute the full policy decision for a proposed action.

        The effective risk is the higher of the classifier result and the
        registered tool's declared risk. A policy violation produces a blocking
        decision instead of raising.
        """
        p = self._policy(policy)
        risk = assess_risk(action.text, action.target, p)
        if action.tool_risk is not None and action.tool_risk > risk:
            risk = action.tool_risk

        try:
            self.validate_command(action.text, p)
        except PolicyViolation as exc:
            logger.warning("Policy blocked tool '%s': %s", action.tool_name, exc)
            return PolicyDecision(risk=risk, require_approval=False, block=True, violation=exc)

        require = not self.should_auto_approve(risk, p)
        logger.debug(
            "Policy decision for tool '%s': risk=%s require_approval=%s",
            action.tool_name,
            risk.value,
            require,
        )
        return PolicyDecision(risk=risk, require_approval=require)
