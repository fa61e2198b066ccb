from __future__ import annotations

"""Pattern-based risk classification for proposed actions.

``assess_risk`` matches substrings and path prefixes rather than parsing
commands, so it over-flags rather than under-flags.
Rules are evaluated most severe first and the first match wins.
"""

from typing import Iterable, Optional

from ..schemas.domain import RiskLevel, SecurityPolicy

DANGEROUS_PATTERNS = (
    "rm -rf /",
    "dd if=/dev/zero",
    ":(){ :|:& };:",
    "chmod -R 777",
    "chown -R",
    "mkfs",
    "format",
    "> /dev/sda",
    "mv /* /dev/null",
)

SENSITIVE_PATHS = (
    "/System",
    "/Library",
    "/usr/bin",
    "/usr/sbin",
    "/bin",
    "/sbin",
    "/etc",
    "/var/root",
)

SUDO_PREFIX = "sudo "

DELETION_PATTERNS = ("rm ", "delete")
MUTATION_PATTERNS = ("mv ", "cp ", "chmod ")
NETWORK_PATTERNS = ("curl ", "wget ", "nc ")


def _contains_any(text: str, patterns: Iterable[str]) -> bool:
    return any(p in text for p in patterns)


def is_sudo(action_text: str) -> bool:
    return action_text.startswith(SUDO_PREFIX)


def is_sensitive_path(target: str, policy: Optional[SecurityPolicy] = None) -> bool:
    """Return True if ``target`` starts with a built-in or policy-restricted path."""
    prefixes = set(SENSITIVE_PATHS)
    if policy is not None:
        prefixes.update(p for p in policy.restricted_paths if p)
    return any(target.startswith(p) for p in prefixes)


def assess_risk(
    action_text: str,
    target: Optional[str] = None,
    policy: Optional[SecurityPolicy] = None,
) -> RiskLevel:
    """
    Classify an action into a ``RiskLevel``.

    The function is total and has no side effects. ``policy`` only widens the
    set of sensitive path prefixes; it never lowers a classification.

    Args:
        action_text: The command or action description.
        target: Optional path the action operates on.
        policy: Optional security policy supplying extra restricted paths.

    Returns:
        The assessed risk level.
    """
    text = action_text or ""

    if _contains_any(text, DANGEROUS_PATTERNS):
        return RiskLevel.critical

    if is_sudo(text):
        return RiskLevel.high

    if target and is_sensitive_path(target, policy):
        return RiskLevel.high

    if _contains_any(text, DELETION_PATTERNS):
        return RiskLevel.medium

    if _contains_any(text, MUTATION_PATTERNS):
        return RiskLevel.medium

    if _contains_any(text, NETWORK_PATTERNS):
        return RiskLevel.low

    return RiskLevel.low
