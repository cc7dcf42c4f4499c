"""Maps typed core failures to HTTP responses.

Every SalesOpsError reaching the edge becomes a JSON body of the form
``{"ok": false, "kind": ..., "message": ...}`` with a status chosen by its
ErrorKind.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.salesops.errors import ErrorKind, SalesOpsError

logger = structlog.get_logger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND_ENTITY: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_TRANSITION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INCOMPLETE_CONFIGURATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DUPLICATE_IDENTITY: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.CONFLICT: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.TRANSIENT_REMOTE_FAILURE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.REMOTE_AUTH_FAILURE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.UNRESOLVABLE_REFERENCE: status.HTTP_502_BAD_GATEWAY,
}


async def salesops_error_handler(request: Request, exc: SalesOpsError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    log_method = logger.error if status_code >= 500 else logger.info
    log_method(
        "request.failed",
        path=request.url.path,
        kind=exc.kind.value,
        error=exc.message,
        status_code=status_code,
        context=exc.context,
    )
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "kind": exc.kind.value, "message": exc.message},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SalesOpsError, salesops_error_handler)
