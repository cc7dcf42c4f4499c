"""FastAPI application factory.

Creates the app with logging middleware, CORS, the typed-error handler,
lifespan events for database and service initialization, and the v1 API
router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.salesops.api.errors import register_error_handlers
from src.salesops.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.salesops.api.v1.router import router as v1_router
from src.salesops.config import get_settings
from src.salesops.core.database import close_db, get_session, init_db
from src.salesops.deals.audit import AuditRecorder
from src.salesops.deals.repository import DealRepository
from src.salesops.deals.transitions import DealStateMachine
from src.salesops.deals.workflows import SalesWorkflows
from src.salesops.folders.provisioner import FolderProvisioner
from src.salesops.services.graph import GraphAuthManager, GraphDriveClient


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB and services on startup, close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    # ── Deal management ──────────────────────────────────────────────────
    deal_repository = DealRepository(session_factory=get_session)
    app.state.deal_repository = deal_repository
    app.state.state_machine = DealStateMachine(
        repository=deal_repository,
        audit=AuditRecorder(system_actor=settings.SYSTEM_ACTOR_UPN),
    )
    log.info("deal_management_initialized")

    # ── Folder provisioning (requires Graph credentials) ─────────────────
    # Without credentials the lifecycle endpoints still work; endpoints that
    # create folders return 503.
    if settings.graph_configured():
        graph_auth = GraphAuthManager(
            tenant_id=settings.GRAPH_TENANT_ID,
            client_id=settings.GRAPH_CLIENT_ID,
            client_secret=settings.GRAPH_CLIENT_SECRET,
            authority_host=settings.GRAPH_AUTHORITY_HOST,
            timeout=settings.GRAPH_TIMEOUT,
        )
        drive_client = GraphDriveClient(
            auth_manager=graph_auth,
            base_url=settings.GRAPH_BASE_URL,
            timeout=settings.GRAPH_TIMEOUT,
        )
        provisioner = FolderProvisioner(
            client=drive_client,
            retry_delay=settings.FOLDER_URL_RETRY_DELAY,
        )
        app.state.workflows = SalesWorkflows(
            repository=deal_repository, provisioner=provisioner
        )
        log.info("folder_provisioning_initialized", base_url=settings.GRAPH_BASE_URL)
    else:
        app.state.workflows = None
        log.warning(
            "folder_provisioning_disabled",
            hint="GRAPH_TENANT_ID, GRAPH_CLIENT_ID and GRAPH_CLIENT_SECRET are required",
        )

    yield

    # ── Shutdown ─────────────────────────────────────────────────────────
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="SalesOps API",
        version="0.1.0",
        description="Company onboarding, deal folder provisioning and deal lifecycle",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    register_error_handlers(app)

    # Include v1 API router (health, companies, customers, deals)
    app.include_router(v1_router)

    return app


# Module-level app for uvicorn
app = create_app()
