"""
Ledger error taxonomy and the FastAPI handlers that render it.

Services raise these instead of HTTPException so the ledger can be driven
from tests, scripts and the API alike. Each error carries the HTTP status
the API answers with and a stable `kind` string for clients.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.logging import get_logger

logger = get_logger(__name__)


class LedgerError(Exception):
    kind = "ledger_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(LedgerError):
    """Malformed input; the caller should correct and resubmit."""

    kind = "validation_error"
    status_code = 422


class NotFoundError(LedgerError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(LedgerError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class DuplicateBookingError(LedgerError):
    kind = "duplicate_booking"
    status_code = status.HTTP_409_CONFLICT


class EventNotActiveError(LedgerError):
    kind = "event_not_active"
    status_code = status.HTTP_409_CONFLICT


class AlreadyCancelledError(LedgerError):
    kind = "already_cancelled"
    status_code = status.HTTP_409_CONFLICT


class ConcurrencyConflictError(LedgerError):
    """Version conflicts persisted past the retry budget. Safe to retry."""

    kind = "concurrency_conflict"
    status_code = status.HTTP_409_CONFLICT


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    logger.warning(
        "ledger_error",
        kind=exc.kind,
        detail=exc.message,
        status_code=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.kind},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
