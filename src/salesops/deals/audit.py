"""Append-only audit trail for deal lifecycle mutations."""

from __future__ import annotations

from typing import Any

import structlog

from src.salesops.deals.repository import DealUnitOfWork
from src.salesops.deals.schemas import AuditEntryCreate

logger = structlog.get_logger(__name__)


class AuditRecorder:
    """Writes one immutable audit entry per lifecycle mutation.

    Entries are staged on the caller's unit of work so they commit with the
    mutation they describe; a failed append propagates and rolls the
    mutation back.

    Args:
        system_actor: Identity recorded when the caller supplies none.
    """

    def __init__(self, system_actor: str) -> None:
        if not system_actor or not system_actor.strip():
            raise ValueError("system_actor must be a non-blank identity")
        self._system_actor = system_actor.strip()

    def resolve_actor(self, actor: str | None) -> str:
        """Return the trimmed actor, or the system identity if blank or missing."""
        if actor and actor.strip():
            return actor.strip()
        return self._system_actor

    async def record(
        self,
        unit: DealUnitOfWork,
        deal_id: str,
        action: str,
        actor: str | None,
        payload: dict[str, Any],
    ) -> AuditEntryCreate:
        entry = AuditEntryCreate(
            deal_id=deal_id,
            action=action,
            actor_upn=self.resolve_actor(actor),
            payload=payload,
        )
        await unit.append_audit(entry)
        logger.info(
            "audit.recorded",
            deal_id=deal_id,
            action=action,
            actor=entry.actor_upn,
        )
        return entry
