"""
Exception handlers for the FastAPI application.

Domain errors with a clear HTTP meaning are mapped to 4xx responses; anything
else is logged with an error id and returned as a 500.
"""

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lumi_agent.agent_core.errors import (
    ApprovalAlreadyResolvedError,
    ApprovalNotFoundError,
    SessionAlreadyRunningError,
    StorageError,
)
from lumi_agent.core.logging_config import get_logger

logger = get_logger(__name__)


async def approval_not_found_handler(request: Request, exc: ApprovalNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def conflict_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error(f"Storage failure in {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all for errors no other handler claims.

    The traceback is logged under a fresh ``error_id``; the client only sees
    the id and the exception type, which is enough to find the log entry.
    """
    error_id = uuid4().hex
    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {exc}",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
        },
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Install the domain error mappings and the catch-all handler on ``app``."""
    app.add_exception_handler(ApprovalNotFoundError, approval_not_found_handler)
    app.add_exception_handler(ApprovalAlreadyResolvedError, conflict_handler)
    app.add_exception_handler(SessionAlreadyRunningError, conflict_handler)
    app.add_exception_handler(StorageError, storage_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Registered %d exception handlers", len(app.exception_handlers))
