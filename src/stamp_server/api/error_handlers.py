"""Error handlers: map ledger and store exceptions to JSON responses.

    LedgerError        → its own status code and ``to_response()`` body
    PersistenceFailure → 500, details only in the log
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stamp_server.core.errors import LedgerError
from stamp_server.store import PersistenceFailure

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(PersistenceFailure)
    async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
        logger.error(
            "Persistence failure on %s (%s)",
            request.url.path,
            exc,
            extra={"operation": exc.context.operation},
        )
        return JSONResponse(status_code=500, content={"error": "failed to save change"})
