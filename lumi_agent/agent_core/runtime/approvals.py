from __future__ import annotations

"""Approval channel between the engine and a human operator.

The engine opens an ``Approval`` and awaits it; an external actor resolves it
through ``resolve`` (by approval id) or ``resolve_session`` (every pending
approval of a session). Each pending approval is backed by an
``asyncio.Future``, so waiting never polls. There is no timeout: a pending
approval is held until it is resolved or the waiting task is cancelled.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..errors import ApprovalAlreadyResolvedError, ApprovalNotFoundError
from ..schemas.domain import Approval, ApprovalDecision

logger = logging.getLogger(__name__)


@dataclass
class _PendingApproval:
    approval: Approval
    future: asyncio.Future


class ApprovalChannel:
    def __init__(self) -> None:
        self._pending: Dict[str, _PendingApproval] = {}
        self._resolved: Dict[str, Approval] = {}

    def open(self, approval: Approval) -> Approval:
        """Register a pending approval. Must be called from a running event loop."""
        future = asyncio.get_running_loop().create_future()
        self._pending[approval.id] = _PendingApproval(approval=approval, future=future)
        logger.info(
            "Approval %s requested for tool '%s' in session %s (risk=%s)",
            approval.id,
            approval.tool_name,
            approval.session_id,
            approval.risk.value,
        )
        return approval

    async def wait(self, approval_id: str) -> Approval:
        """Wait for the decision on a pending approval and return the resolved record."""
        entry = self._pending.get(approval_id)
        if entry is None:
            resolved = self._resolved.get(approval_id)
            if resolved is not None:
                return resolved
            raise ApprovalNotFoundError(approval_id)
        return await entry.future

    def resolve(
        self,
        approval_id: str,
        decision: ApprovalDecision,
        decided_by: Optional[str] = None,
    ) -> Approval:
        if approval_id in self._resolved:
            raise ApprovalAlreadyResolvedError(approval_id)
        entry = self._pending.pop(approval_id, None)
        if entry is None:
            raise ApprovalNotFoundError(approval_id)

        resolved = entry.approval.model_copy(
            update={
                "decision": decision,
                "decided_at": datetime.now(timezone.utc),
                "decided_by": decided_by,
            }
        )
        self._resolved[approval_id] = resolved
        if not entry.future.done():
            entry.future.set_result(resolved)
        logger.info("Approval %s %s by %s", approval_id, decision.value, decided_by or "unknown")
        return resolved

    def resolve_session(
        self,
        session_id: str,
        decision: ApprovalDecision,
        decided_by: Optional[str] = None,
    ) -> List[Approval]:
        """Resolve every pending approval of a session with the same decision."""
        ids = [a.id for a in self.pending(session_id)]
        if not ids:
            raise ApprovalNotFoundError(session_id)
        return [self.resolve(approval_id, decision, decided_by) for approval_id in ids]

    def pending(self, session_id: Optional[str] = None) -> List[Approval]:
        return [
            e.approval
            for e in self._pending.values()
            if session_id is None or e.approval.session_id == session_id
        ]

    def get(self, approval_id: str) -> Optional[Approval]:
        entry = self._pending.get(approval_id)
        if entry is not None:
            return entry.approval
        return self._resolved.get(approval_id)

    def discard(self, approval_id: str) -> None:
        """Forget an approval once its waiter is done; a pending one is cancelled."""
        self._resolved.pop(approval_id, None)
        entry = self._pending.pop(approval_id, None)
        if entry is not None and not entry.future.done():
            entry.future.cancel()
