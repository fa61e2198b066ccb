"""Persistence boundary for execution sessions and the tool audit log.

The engine is written against the Protocols in ``repos.interfaces`` so it can
run with:

- the async SQLAlchemy implementation in ``repos.sql``,
- the in-memory implementation in ``repos.memory`` (tests, ephemeral runs).
"""

from .interfaces import AuditLog, SessionRepository
from .memory import InMemoryAuditLog, InMemorySessionRepository

__all__ = [
    "AuditLog",
    "SessionRepository",
    "InMemoryAuditLog",
    "InMemorySessionRepository",
]
