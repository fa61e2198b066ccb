"""Risk classification and security policy gate.

- ``assess_risk`` maps an action (command text and optional target path) to a
  ``RiskLevel`` using pattern rules.
- ``AuthorizationPolicy`` validates actions against a ``SecurityPolicy``
  (blacklist, sudo, whitelist) and decides whether interactive approval is
  required.
- ``ProposedAction`` is the policy-facing view of a model tool call.
"""

from .authorization import AuthorizationPolicy
from .models import PolicyDecision, ProposedAction
from .risk import DANGEROUS_PATTERNS, SENSITIVE_PATHS, assess_risk

__all__ = [
    "AuthorizationPolicy",
    "PolicyDecision",
    "ProposedAction",
    "DANGEROUS_PATTERNS",
    "SENSITIVE_PATHS",
    "assess_risk",
]
