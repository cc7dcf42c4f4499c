"""Unit tests for DealStateMachine -- guarded deal lifecycle transitions.

Tests cover:
- next_status / validate_status_transition: order, skip, regress, repeat
- advance: happy path, terminal deals, audit payload, actor fallback
- confirm: fast-forward below WAITING_FOR_CONFIRMATION, no rewind above it
- mark_lost: reason validation, exclusivity with completion, one-way flag
- mark_completed: CONFIRMED requirement, idempotence
- atomicity: a failed audit append leaves the deal untouched
"""

from __future__ import annotations

import asyncio
import uuid

import pytest

from src.salesops.deals.schemas import DealStatus, DealType
from src.salesops.deals.transitions import (
    ACTION_ADVANCE,
    ACTION_COMPLETED,
    ACTION_CONFIRM,
    ACTION_LOST,
    STATUS_ORDER,
    next_status,
    validate_status_transition,
)
from src.salesops.errors import EntityNotFoundError, ErrorKind, InvalidTransitionError
from tests.doubles import SYSTEM_ACTOR


# ── Status order tests ───────────────────────────────────────────────────────


class TestStatusOrder:
    """Tests for the pure status-order helpers."""

    def test_order_is_declaration_order(self) -> None:
        assert STATUS_ORDER == list(DealStatus)

    def test_next_status_walks_the_pipeline(self) -> None:
        assert next_status(DealStatus.NOT_STARTED) == DealStatus.PENDING_TO_QUOTE
        assert (
            next_status(DealStatus.WAITING_FOR_CONFIRMATION)
            == DealStatus.IN_PRE_SALES_STAGE
        )

    def test_last_stage_has_no_successor(self) -> None:
        assert next_status(DealStatus.IN_PRE_SALES_STAGE) is None

    @pytest.mark.parametrize("current", STATUS_ORDER[:-1])
    def test_immediate_successor_is_valid(self, current: DealStatus) -> None:
        validate_status_transition(current, next_status(current))

    def test_skip_is_rejected(self) -> None:
        with pytest.raises(InvalidTransitionError, match="Invalid status transition"):
            validate_status_transition(DealStatus.NOT_STARTED, DealStatus.WAITING_FOR_PO)

    def test_regress_is_rejected(self) -> None:
        with pytest.raises(InvalidTransitionError, match="regress or repeat"):
            validate_status_transition(DealStatus.WAITING_FOR_PO, DealStatus.NOT_STARTED)

    def test_repeat_is_rejected(self) -> None:
        with pytest.raises(InvalidTransitionError, match="regress or repeat"):
            validate_status_transition(DealStatus.WAITING_FOR_PO, DealStatus.WAITING_FOR_PO)


# ── advance tests ────────────────────────────────────────────────────────────


class TestAdvance:
    """Tests for DealStateMachine.advance."""

    async def test_advances_one_stage(self, machine, repo) -> None:
        deal = repo.add_deal()

        updated = await machine.advance(deal.id, DealStatus.PENDING_TO_QUOTE, actor="a@x.com")

        assert updated.status == DealStatus.PENDING_TO_QUOTE
        assert repo.deals[deal.id].status == DealStatus.PENDING_TO_QUOTE
        entries = await repo.list_audit_entries(deal.id)
        assert len(entries) == 1
        assert entries[0].action == ACTION_ADVANCE
        assert entries[0].actor_upn == "a@x.com"
        assert entries[0].payload == {
            "previous_status": "NOT_STARTED",
            "next_status": "PENDING_TO_QUOTE",
        }

    async def test_walks_the_whole_pipeline(self, machine, repo) -> None:
        deal = repo.add_deal()
        for target in STATUS_ORDER[1:]:
            await machine.advance(deal.id, target)

        assert repo.deals[deal.id].status == DealStatus.IN_PRE_SALES_STAGE
        assert len(await repo.list_audit_entries(deal.id)) == len(STATUS_ORDER) - 1

    async def test_skip_leaves_deal_unchanged(self, machine, repo) -> None:
        deal = repo.add_deal()

        with pytest.raises(InvalidTransitionError) as exc_info:
            await machine.advance(deal.id, DealStatus.WAITING_FOR_PO)

        assert exc_info.value.kind == ErrorKind.INVALID_TRANSITION
        assert repo.deals[deal.id].status == DealStatus.NOT_STARTED
        assert repo.audit == []

    async def test_lost_deal_cannot_advance(self, machine, repo) -> None:
        deal = repo.add_deal(is_lost=True, lost_reason="price")

        with pytest.raises(InvalidTransitionError, match="lost"):
            await machine.advance(deal.id, DealStatus.PENDING_TO_QUOTE)

    async def test_completed_deal_cannot_advance(self, machine, repo) -> None:
        deal = repo.add_deal(
            type=DealType.CONFIRMED,
            status=DealStatus.WAITING_FOR_CONFIRMATION,
            is_completed=True,
        )

        with pytest.raises(InvalidTransitionError, match="completed"):
            await machine.advance(deal.id, DealStatus.IN_PRE_SALES_STAGE)

    @pytest.mark.parametrize("actor", [None, "", "   "])
    async def test_blank_actor_falls_back_to_system(self, machine, repo, actor) -> None:
        deal = repo.add_deal()

        await machine.advance(deal.id, DealStatus.PENDING_TO_QUOTE, actor=actor)

        assert repo.audit[0].actor_upn == SYSTEM_ACTOR

    async def test_unknown_deal(self, machine) -> None:
        with pytest.raises(EntityNotFoundError) as exc_info:
            await machine.advance(str(uuid.uuid4()), DealStatus.PENDING_TO_QUOTE)

        assert exc_info.value.kind == ErrorKind.NOT_FOUND_ENTITY

    async def test_concurrent_advances_apply_once(self, machine, repo) -> None:
        """Two callers racing to the same next stage: exactly one succeeds."""
        deal = repo.add_deal()

        results = await asyncio.gather(
            machine.advance(deal.id, DealStatus.PENDING_TO_QUOTE),
            machine.advance(deal.id, DealStatus.PENDING_TO_QUOTE),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InvalidTransitionError)
        assert len(repo.audit) == 1


# ── confirm tests ────────────────────────────────────────────────────────────


class TestConfirm:
    """Tests for DealStateMachine.confirm."""

    @pytest.mark.parametrize(
        "status",
        [
            DealStatus.NOT_STARTED,
            DealStatus.PENDING_TO_QUOTE,
            DealStatus.PENDING_VENDOR_QUOTE,
            DealStatus.WAITING_FOR_PO,
        ],
    )
    async def test_fast_forwards_early_status(self, machine, repo, status) -> None:
        deal = repo.add_deal(status=status)

        updated = await machine.confirm(deal.id)

        assert updated.type == DealType.CONFIRMED
        assert updated.status == DealStatus.WAITING_FOR_CONFIRMATION
        assert repo.audit[0].action == ACTION_CONFIRM
        assert repo.audit[0].payload == {
            "previous_type": "NEW_OPPORTUNITY",
            "previous_status": status.value,
            "new_type": "CONFIRMED",
            "new_status": "WAITING_FOR_CONFIRMATION",
        }

    async def test_later_status_is_kept(self, machine, repo) -> None:
        deal = repo.add_deal(status=DealStatus.IN_PRE_SALES_STAGE)

        updated = await machine.confirm(deal.id)

        assert updated.status == DealStatus.IN_PRE_SALES_STAGE
        assert updated.type == DealType.CONFIRMED

    async def test_reconfirm_is_audited_again(self, machine, repo) -> None:
        deal = repo.add_deal()

        await machine.confirm(deal.id)
        await machine.confirm(deal.id)

        assert [e.action for e in repo.audit] == [ACTION_CONFIRM, ACTION_CONFIRM]

    async def test_lost_deal_cannot_be_confirmed(self, machine, repo) -> None:
        deal = repo.add_deal(is_lost=True, lost_reason="budget")

        with pytest.raises(InvalidTransitionError):
            await machine.confirm(deal.id)

        assert repo.deals[deal.id].type == DealType.NEW_OPPORTUNITY


# ── mark_lost tests ──────────────────────────────────────────────────────────


class TestMarkLost:
    """Tests for DealStateMachine.mark_lost."""

    async def test_marks_lost_with_trimmed_reason(self, machine, repo) -> None:
        deal = repo.add_deal()

        updated = await machine.mark_lost(
            deal.id, "  went with competitor  ", alt_opportunity="maintenance"
        )

        assert updated.is_lost is True
        assert updated.is_completed is False
        assert updated.lost_reason == "went with competitor"
        assert updated.alt_opportunity == "maintenance"
        assert repo.audit[0].action == ACTION_LOST
        assert repo.audit[0].payload == {
            "previous_is_lost": False,
            "previous_is_completed": False,
            "is_lost": True,
            "is_completed": False,
            "reason": "went with competitor",
            "alt_opportunity": "maintenance",
        }

    @pytest.mark.parametrize("reason", ["", "   "])
    async def test_blank_reason_rejected(self, machine, repo, reason) -> None:
        deal = repo.add_deal()

        with pytest.raises(InvalidTransitionError, match="empty"):
            await machine.mark_lost(deal.id, reason)

        assert repo.deals[deal.id].is_lost is False

    async def test_already_lost_rejected(self, machine, repo) -> None:
        deal = repo.add_deal()
        await machine.mark_lost(deal.id, "price")

        with pytest.raises(InvalidTransitionError, match="already"):
            await machine.mark_lost(deal.id, "timing")

        assert repo.deals[deal.id].lost_reason == "price"
        assert len(repo.audit) == 1

    async def test_completed_deal_cannot_be_lost(self, machine, repo) -> None:
        deal = repo.add_deal(type=DealType.CONFIRMED, is_completed=True)

        with pytest.raises(InvalidTransitionError):
            await machine.mark_lost(deal.id, "late change")

        assert repo.deals[deal.id].is_lost is False


# ── mark_completed tests ─────────────────────────────────────────────────────


class TestMarkCompleted:
    """Tests for DealStateMachine.mark_completed."""

    async def test_completes_confirmed_deal(self, machine, repo) -> None:
        deal = repo.add_deal(type=DealType.CONFIRMED)

        updated = await machine.mark_completed(deal.id, actor="pm@x.com")

        assert updated.is_completed is True
        assert repo.audit[0].action == ACTION_COMPLETED
        assert repo.audit[0].payload == {
            "previous_is_completed": False,
            "is_completed": True,
        }

    async def test_idempotent_when_already_completed(self, machine, repo) -> None:
        deal = repo.add_deal(type=DealType.CONFIRMED)
        await machine.mark_completed(deal.id)

        again = await machine.mark_completed(deal.id)

        assert again.is_completed is True
        assert len(repo.audit) == 1

    @pytest.mark.parametrize(
        "deal_type", [DealType.NEW_OPPORTUNITY, DealType.THIRD_QUOTE, DealType.UPCOMING]
    )
    async def test_requires_confirmed(self, machine, repo, deal_type) -> None:
        deal = repo.add_deal(type=deal_type)

        with pytest.raises(InvalidTransitionError, match="CONFIRMED"):
            await machine.mark_completed(deal.id)

    async def test_lost_deal_cannot_complete(self, machine, repo) -> None:
        deal = repo.add_deal(type=DealType.CONFIRMED)
        await machine.mark_lost(deal.id, "cancelled")

        with pytest.raises(InvalidTransitionError, match="lost"):
            await machine.mark_completed(deal.id)

        assert repo.deals[deal.id].is_completed is False

    async def test_confirm_then_complete(self, machine, repo) -> None:
        deal = repo.add_deal()

        await machine.confirm(deal.id)
        completed = await machine.mark_completed(deal.id)

        assert completed.is_completed
        assert completed.status == DealStatus.WAITING_FOR_CONFIRMATION


# ── Atomicity ────────────────────────────────────────────────────────────────


class TestAtomicity:
    """A mutation and its audit entry commit together or not at all."""

    async def test_failed_audit_rolls_back_mutation(self, machine, repo) -> None:
        deal = repo.add_deal()
        repo.fail_audit = True

        with pytest.raises(RuntimeError):
            await machine.advance(deal.id, DealStatus.PENDING_TO_QUOTE)

        assert repo.deals[deal.id].status == DealStatus.NOT_STARTED
        assert repo.audit == []
