"""Deal lifecycle state machine.

Enforces the deal lifecycle against current persisted state:

- Status only moves forward one stage at a time along STATUS_ORDER (no
  skipping, regressing or repeating).
- ``is_lost`` and ``is_completed`` are mutually exclusive outcomes. Once
  either is set the deal is terminal: status no longer changes and the
  opposite outcome can never be set. Nothing ever clears ``is_lost``.
- Only CONFIRMED deals can complete, and a confirmed deal never sits
  earlier than WAITING_FOR_CONFIRMATION.

Every operation reads, checks and writes inside one deal transaction, and
records its audit entry in that same transaction.
"""

from __future__ import annotations

import structlog

from src.salesops.deals.audit import AuditRecorder
from src.salesops.deals.repository import DealRepository
from src.salesops.deals.schemas import DealRead, DealStatus, DealType
from src.salesops.errors import InvalidTransitionError

logger = structlog.get_logger(__name__)

# ── Status Order ────────────────────────────────────────────────────────────

STATUS_ORDER: list[DealStatus] = [
    DealStatus.NOT_STARTED,
    DealStatus.PENDING_TO_QUOTE,
    DealStatus.PENDING_VENDOR_QUOTE,
    DealStatus.WAITING_FOR_PO,
    DealStatus.WAITING_FOR_CONFIRMATION,
    DealStatus.IN_PRE_SALES_STAGE,
]

_CONFIRMATION_INDEX = STATUS_ORDER.index(DealStatus.WAITING_FOR_CONFIRMATION)

# Audit action names
ACTION_ADVANCE = "advance_status"
ACTION_CONFIRM = "set_type_confirmed"
ACTION_LOST = "set_lost"
ACTION_COMPLETED = "set_completed"


def next_status(current: DealStatus) -> DealStatus | None:
    """Return the immediate successor of ``current``, or None for the last stage."""
    idx = STATUS_ORDER.index(current)
    if idx >= len(STATUS_ORDER) - 1:
        return None
    return STATUS_ORDER[idx + 1]


def validate_status_transition(current: DealStatus, target: DealStatus) -> None:
    """Check that ``target`` is exactly the next stage after ``current``.

    Raises:
        InvalidTransitionError: If the move regresses, repeats or skips.
    """
    current_idx = STATUS_ORDER.index(current)
    target_idx = STATUS_ORDER.index(target)

    if target_idx <= current_idx:
        raise InvalidTransitionError(
            f"Cannot regress or repeat deal status: {current.value} -> {target.value}",
            current=current.value,
            target=target.value,
        )
    if target_idx != current_idx + 1:
        raise InvalidTransitionError(
            f"Invalid status transition: {current.value} -> {target.value}",
            current=current.value,
            target=target.value,
        )


class DealStateMachine:
    """Validates and applies deal lifecycle transitions.

    Args:
        repository: Persistence with per-deal transactions.
        audit: Recorder staging one audit entry per mutation.
    """

    def __init__(self, repository: DealRepository, audit: AuditRecorder) -> None:
        self._repo = repository
        self._audit = audit

    async def advance(
        self, deal_id: str, target: DealStatus, actor: str | None = None
    ) -> DealRead:
        """Move a deal to the next status.

        Raises:
            EntityNotFoundError: If the deal does not exist.
            InvalidTransitionError: If the deal is lost or completed, or
                ``target`` is not the immediate successor of its status.
        """
        async with self._repo.deal_transaction(deal_id) as unit:
            deal = unit.deal
            if deal.is_lost:
                raise InvalidTransitionError("Cannot advance a lost deal", deal_id=deal_id)
            if deal.is_completed:
                raise InvalidTransitionError(
                    "Cannot advance a completed deal", deal_id=deal_id
                )
            validate_status_transition(deal.status, target)

            unit.update(status=target)
            await self._audit.record(
                unit,
                deal_id,
                ACTION_ADVANCE,
                actor,
                {"previous_status": deal.status.value, "next_status": target.value},
            )
            updated = unit.deal

        logger.info(
            "deal.status_advanced",
            deal_id=deal_id,
            from_status=deal.status.value,
            to_status=target.value,
        )
        return updated

    async def confirm(self, deal_id: str, actor: str | None = None) -> DealRead:
        """Mark a deal CONFIRMED, fast-forwarding status to WAITING_FOR_CONFIRMATION.

        Status is only moved when it precedes WAITING_FOR_CONFIRMATION.
        Confirming an already-confirmed deal is allowed and audited again.

        Raises:
            EntityNotFoundError: If the deal does not exist.
            InvalidTransitionError: If the deal is lost.
        """
        async with self._repo.deal_transaction(deal_id) as unit:
            deal = unit.deal
            if deal.is_lost:
                raise InvalidTransitionError("Cannot confirm a lost deal", deal_id=deal_id)

            new_status = deal.status
            if STATUS_ORDER.index(deal.status) < _CONFIRMATION_INDEX:
                new_status = DealStatus.WAITING_FOR_CONFIRMATION

            unit.update(type=DealType.CONFIRMED, status=new_status)
            await self._audit.record(
                unit,
                deal_id,
                ACTION_CONFIRM,
                actor,
                {
                    "previous_type": deal.type.value,
                    "previous_status": deal.status.value,
                    "new_type": DealType.CONFIRMED.value,
                    "new_status": new_status.value,
                },
            )
            updated = unit.deal

        logger.info(
            "deal.confirmed",
            deal_id=deal_id,
            previous_status=deal.status.value,
            new_status=new_status.value,
        )
        return updated

    async def mark_lost(
        self,
        deal_id: str,
        reason: str,
        alt_opportunity: str | None = None,
        actor: str | None = None,
    ) -> DealRead:
        """Mark a deal lost. One-way: nothing clears ``is_lost``.

        Raises:
            InvalidTransitionError: If ``reason`` is blank, or the deal is
                already lost or already completed.
            EntityNotFoundError: If the deal does not exist.
        """
        if not reason or not reason.strip():
            raise InvalidTransitionError("Lost reason cannot be empty", deal_id=deal_id)
        clean_reason = reason.strip()

        async with self._repo.deal_transaction(deal_id) as unit:
            deal = unit.deal
            if deal.is_lost:
                raise InvalidTransitionError(
                    "Deal already marked as lost", deal_id=deal_id
                )
            if deal.is_completed:
                raise InvalidTransitionError(
                    "Cannot mark a completed deal as lost", deal_id=deal_id
                )

            unit.update(
                is_lost=True,
                is_completed=False,
                lost_reason=clean_reason,
                alt_opportunity=alt_opportunity,
            )
            await self._audit.record(
                unit,
                deal_id,
                ACTION_LOST,
                actor,
                {
                    "previous_is_lost": deal.is_lost,
                    "previous_is_completed": deal.is_completed,
                    "is_lost": True,
                    "is_completed": False,
                    "reason": clean_reason,
                    "alt_opportunity": alt_opportunity,
                },
            )
            updated = unit.deal

        logger.info("deal.marked_lost", deal_id=deal_id)
        return updated

    async def mark_completed(self, deal_id: str, actor: str | None = None) -> DealRead:
        """Mark a confirmed deal completed. Idempotent when already completed.

        Raises:
            EntityNotFoundError: If the deal does not exist.
            InvalidTransitionError: If the deal is lost or not CONFIRMED.
        """
        async with self._repo.deal_transaction(deal_id) as unit:
            deal = unit.deal
            if deal.is_lost:
                raise InvalidTransitionError(
                    "Cannot complete a lost deal", deal_id=deal_id
                )
            if deal.type != DealType.CONFIRMED:
                raise InvalidTransitionError(
                    "Deal must be CONFIRMED before completion", deal_id=deal_id
                )
            if deal.is_completed:
                logger.debug("deal.already_completed", deal_id=deal_id)
                return deal

            unit.update(is_completed=True)
            await self._audit.record(
                unit,
                deal_id,
                ACTION_COMPLETED,
                actor,
                {"previous_is_completed": False, "is_completed": True},
            )
            updated = unit.deal

        logger.info("deal.completed", deal_id=deal_id)
        return updated
