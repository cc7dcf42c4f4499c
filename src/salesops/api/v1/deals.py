"""REST API endpoints for deals and their lifecycle.

Deal creation provisions the deal folder tree before persisting; outside
parties are attached as participants. Lifecycle endpoints go through the
DealStateMachine; the acting identity comes from the optional
``actor_upn`` in the request body and falls back to the configured system
identity.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel

from src.salesops.deals.schemas import (
    AuditEntryRead,
    DealCreate,
    DealRead,
    DealStatus,
    DealView,
    ParticipantCreate,
    ParticipantRead,
)
from src.salesops.errors import EntityNotFoundError

router = APIRouter(prefix="/api/v1/deals", tags=["deals"])


# ── Request Schemas ──────────────────────────────────────────────────────────


class ActorRequest(BaseModel):
    """Request body carrying only the acting identity."""

    actor_upn: str | None = None


class AdvanceStatusRequest(ActorRequest):
    """Request body for moving a deal to its next status."""

    target_status: DealStatus


class MarkLostRequest(ActorRequest):
    """Request body for marking a deal lost."""

    reason: str
    alt_opportunity: str | None = None


# ── Dependency Injection Helpers ─────────────────────────────────────────────


def _get_deal_repository(request: Request) -> Any:
    """Retrieve DealRepository from app.state, 503 if not available."""
    repo = getattr(request.app.state, "deal_repository", None)
    if repo is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Deal management not initialized",
        )
    return repo


def _get_state_machine(request: Request) -> Any:
    machine = getattr(request.app.state, "state_machine", None)
    if machine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Deal management not initialized",
        )
    return machine


def _get_workflows(request: Request) -> Any:
    workflows = getattr(request.app.state, "workflows", None)
    if workflows is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Folder provisioning not configured",
        )
    return workflows


# ── Deal Endpoints ───────────────────────────────────────────────────────────


@router.post("", response_model=DealRead, status_code=201)
async def create_deal(body: DealCreate, request: Request) -> DealRead:
    """Create a deal with its numbered folder and labelled sub-folders."""
    workflows = _get_workflows(request)
    return await workflows.create_deal(body)


@router.get("", response_model=list[DealRead])
async def list_deals(
    request: Request,
    view: DealView | None = Query(default=None, description="Named deal listing"),
    company_id: str | None = Query(default=None, description="Filter by company ID"),
) -> list[DealRead]:
    """List deals, newest first."""
    repo = _get_deal_repository(request)
    return await repo.list_deals(view=view, company_id=company_id)


@router.get("/{deal_id}", response_model=DealRead)
async def get_deal(deal_id: str, request: Request) -> DealRead:
    """Get a single deal with its file links."""
    repo = _get_deal_repository(request)
    deal = await repo.get_deal(deal_id)
    if deal is None:
        raise EntityNotFoundError(f"Deal not found: {deal_id}", deal_id=deal_id)
    return deal


@router.post(
    "/{deal_id}/participants", response_model=ParticipantRead, status_code=201
)
async def add_deal_participant(
    deal_id: str, body: ParticipantCreate, request: Request
) -> ParticipantRead:
    """Attach a vendor, distributor, partner or consultant to a deal."""
    repo = _get_deal_repository(request)
    return await repo.add_participant(deal_id, body)


@router.get("/{deal_id}/audit", response_model=list[AuditEntryRead])
async def list_deal_audit(deal_id: str, request: Request) -> list[AuditEntryRead]:
    """Audit trail of a deal, oldest first."""
    repo = _get_deal_repository(request)
    if await repo.get_deal(deal_id) is None:
        raise EntityNotFoundError(f"Deal not found: {deal_id}", deal_id=deal_id)
    return await repo.list_audit_entries(deal_id)


# ── Lifecycle Endpoints ──────────────────────────────────────────────────────


@router.post("/{deal_id}/advance", response_model=DealRead)
async def advance_deal(
    deal_id: str, body: AdvanceStatusRequest, request: Request
) -> DealRead:
    """Move a deal to the next status."""
    machine = _get_state_machine(request)
    return await machine.advance(deal_id, body.target_status, actor=body.actor_upn)


@router.post("/{deal_id}/confirm", response_model=DealRead)
async def confirm_deal(
    deal_id: str, request: Request, body: ActorRequest | None = None
) -> DealRead:
    """Mark a deal CONFIRMED."""
    machine = _get_state_machine(request)
    return await machine.confirm(deal_id, actor=body.actor_upn if body else None)


@router.post("/{deal_id}/lost", response_model=DealRead)
async def mark_deal_lost(
    deal_id: str, body: MarkLostRequest, request: Request
) -> DealRead:
    """Mark a deal lost with a reason."""
    machine = _get_state_machine(request)
    return await machine.mark_lost(
        deal_id,
        body.reason,
        alt_opportunity=body.alt_opportunity,
        actor=body.actor_upn,
    )


@router.post("/{deal_id}/completed", response_model=DealRead)
async def mark_deal_completed(
    deal_id: str, request: Request, body: ActorRequest | None = None
) -> DealRead:
    """Mark a confirmed deal completed."""
    machine = _get_state_machine(request)
    return await machine.mark_completed(deal_id, actor=body.actor_upn if body else None)
