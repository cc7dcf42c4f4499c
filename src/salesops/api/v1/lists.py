"""REST API endpoints for document lists.

Each list gathers the labelled folder of one kind (quotes, agreements,
invoices, ...) across every deal that is not lost, ordered by project.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, status

from src.salesops.deals.schemas import DocumentListItem, FileLabel

router = APIRouter(prefix="/api/v1/lists", tags=["lists"])


def _get_deal_repository(request: Request) -> Any:
    """Retrieve DealRepository from app.state, 503 if not available."""
    repo = getattr(request.app.state, "deal_repository", None)
    if repo is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Deal management not initialized",
        )
    return repo


@router.get("/{label}", response_model=list[DocumentListItem])
async def get_document_list(label: FileLabel, request: Request) -> list[DocumentListItem]:
    """List the folders labelled ``label`` on deals that are not lost."""
    repo = _get_deal_repository(request)
    return await repo.list_file_links(label)
