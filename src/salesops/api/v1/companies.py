"""REST API endpoints for companies and customers.

Onboarding a company provisions its base folder in the sales, projects and
finance drives; listing companies returns summaries with deal counts and
base-folder URLs, and a single company comes back with its customers and
deals.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, status

from src.salesops.deals.schemas import (
    CompanyCreate,
    CompanyDetail,
    CompanyRead,
    CompanySummary,
    CustomerCreate,
    CustomerRead,
)
from src.salesops.errors import EntityNotFoundError

router = APIRouter(prefix="/api/v1", tags=["companies"])


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


def _get_workflows(request: Request) -> Any:
    """Retrieve SalesWorkflows from app.state, 503 if Graph is not configured."""
    workflows = getattr(request.app.state, "workflows", None)
    if workflows is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Folder provisioning not configured",
        )
    return workflows


# ── Company Endpoints ────────────────────────────────────────────────────────


@router.post("/companies", response_model=CompanyRead, status_code=201)
async def create_company(body: CompanyCreate, request: Request) -> CompanyRead:
    """Onboard a company and create its base folder in each of its drives."""
    workflows = _get_workflows(request)
    return await workflows.onboard_company(body)


@router.get("/companies", response_model=list[CompanySummary])
async def list_companies(request: Request) -> list[CompanySummary]:
    """List company summaries with deal counts and base-folder URLs."""
    workflows = _get_workflows(request)
    return await workflows.summarize_companies()


@router.get("/companies/{company_id}", response_model=CompanyDetail)
async def get_company(company_id: str, request: Request) -> CompanyDetail:
    """Get one company with its customers, deals and base-folder URLs."""
    workflows = _get_workflows(request)
    return await workflows.get_company_detail(company_id)


# ── Customer Endpoints ───────────────────────────────────────────────────────


@router.post("/customers", response_model=CustomerRead, status_code=201)
async def create_customer(body: CustomerCreate, request: Request) -> CustomerRead:
    """Create a customer for an existing company."""
    repo = _get_deal_repository(request)
    if await repo.get_company(body.company_id) is None:
        raise EntityNotFoundError(
            f"Company not found: {body.company_id}", company_id=body.company_id
        )
    return await repo.create_customer(body)
