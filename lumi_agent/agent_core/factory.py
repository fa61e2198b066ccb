from __future__ import annotations

"""Convenience factories for wiring the agent core.

The helpers keep application wiring and tests concise while still letting
deployments provide their own provider, registry, repositories or policy.
"""

from typing import Dict, Optional

from ..core.config import EngineConfig, settings
from .policy.authorization import AuthorizationPolicy
from .providers.base import ModelProvider
from .providers.pydantic_ai_provider import PydanticAIModelProvider
from .repos.interfaces import AuditLog, SessionRepository
from .repos.memory import InMemoryAuditLog, InMemorySessionRepository
from .runtime.approvals import ApprovalChannel
from .runtime.engine import ExecutionEngine
from .runtime.models import EngineDeps
from .schemas.domain import SecurityPolicy
from .schemas.messages import ModelPricing
from .tools.builtin import build_default_registry
from .tools.registry import ToolRegistry


def build_deps(
    *,
    provider: Optional[ModelProvider] = None,
    registry: Optional[ToolRegistry] = None,
    sessions: Optional[SessionRepository] = None,
    audit_log: Optional[AuditLog] = None,
    approvals: Optional[ApprovalChannel] = None,
    default_policy: Optional[SecurityPolicy] = None,
    pricing: Optional[Dict[str, ModelPricing]] = None,
) -> EngineDeps:
    """Build ``EngineDeps``, defaulting to in-memory storage and the builtin tools."""
    return EngineDeps(
        provider=provider if provider is not None else PydanticAIModelProvider(),
        registry=registry if registry is not None else build_default_registry(),
        sessions=sessions if sessions is not None else InMemorySessionRepository(),
        audit_log=audit_log if audit_log is not None else InMemoryAuditLog(),
        approvals=approvals if approvals is not None else ApprovalChannel(),
        authorization=AuthorizationPolicy(default_policy),
        pricing=dict(pricing or {}),
    )


def build_engine(*, deps: EngineDeps, config: Optional[EngineConfig] = None) -> ExecutionEngine:
    """Construct an ``ExecutionEngine`` from dependencies and engine settings."""
    cfg = config if config is not None else settings.engine
    return ExecutionEngine(deps, max_iterations=cfg.max_iterations, stream_responses=cfg.stream_responses)
