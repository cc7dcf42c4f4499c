"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready). Liveness only
confirms the process is serving; readiness also checks the database and
whether the remote drive integration is configured.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.salesops.config import get_settings
from src.salesops.core.database import get_engine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: verifies DB connectivity and Graph configuration.

    Returns 200 if the database is reachable, 503 otherwise. A missing
    Graph configuration is reported but does not fail readiness, since
    lifecycle transitions work without it.
    """
    checks: dict = {"database": "ok", "graph": "ok"}

    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)

    if getattr(request.app.state, "workflows", None) is None:
        checks["graph"] = "not_configured"

    healthy = checks["database"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if healthy else "degraded", "checks": checks},
    )
