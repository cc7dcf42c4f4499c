"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.salesops.api.v1 import companies, deals, health, lists

router = APIRouter()

router.include_router(health.router)
router.include_router(companies.router)
router.include_router(deals.router)
router.include_router(lists.router)
