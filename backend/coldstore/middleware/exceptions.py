"""Ledger exceptions and the handlers that turn them into API envelopes.

Every failure response keeps the envelope the gate-pass UI consumes:

    {
        "success": false,
        "data": null,
        "message": "Human-readable reason",
        "error": {"code": "ERROR_CODE", "message": "...", "details": {...}}
    }
"""

import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ColdStoreException(Exception):
    """Base exception for ledger errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ResourceNotFoundError(ColdStoreException):
    """Unknown lot, bucket, gate pass or allocation."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
            details={"resource": resource, "id": identifier},
        )


class InvalidInputError(ColdStoreException):
    """Non-positive or malformed quantity, missing location, closed lot, ..."""

    def __init__(
        self,
        message: str,
        error_code: str = "INVALID_INPUT",
        details: dict | None = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
            details=details,
        )


class GatePassNumberConflictError(InvalidInputError):
    """A proposed gatePassNo is not above the store's counter."""

    def __init__(self, pass_type: str, gate_pass_no: int, last_number: int):
        super().__init__(
            message=f"Gate pass number already exists: {pass_type} #{gate_pass_no} "
                    f"(last issued #{last_number})",
            error_code="DUPLICATE_GATE_PASS_NUMBER",
            details={"type": pass_type, "gatePassNo": gate_pass_no, "lastIssued": last_number},
        )
        self.status_code = status.HTTP_409_CONFLICT


class InsufficientQuantityError(ColdStoreException):
    """Requested amount exceeds a bucket's current quantity."""

    def __init__(self, bucket: str, requested: float, available: float, bucket_ref: dict | None = None):
        shortfall = round(requested - available, 3)
        super().__init__(
            message=f"Insufficient quantity for {bucket}: requested {requested:g}, "
                    f"available {available:g} (short by {shortfall:g})",
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INSUFFICIENT_QUANTITY",
            details={
                "bucket": bucket_ref or {"label": bucket},
                "requested": requested,
                "available": available,
                "shortfall": shortfall,
            },
        )
        self.shortfall = shortfall


class ConflictError(ColdStoreException):
    """Concurrent modification detected; the client may retry."""

    def __init__(self, message: str = "The ledger was modified concurrently. Please retry."):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONCURRENT_MODIFICATION",
            details={"retryable": True},
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """Create the standard failure envelope."""
    error = {
        "code": error_code,
        "message": message,
    }
    if details:
        error["details"] = details

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "message": message,
            "error": error,
        },
    )


async def coldstore_exception_handler(
    request: Request,
    exc: ColdStoreException,
) -> JSONResponse:
    """Handle ledger exceptions (surfaced verbatim)."""
    logger.warning(
        f"Ledger exception: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "errors": exc.errors(),
        },
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    first = errors[0] if errors else None
    message = f"Validation error: {first['field']}: {first['message']}" if first else "Validation error"

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message=message,
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def database_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """Handle database integrity errors (unique violations, foreign key, etc.)."""
    logger.error(
        f"Database integrity error on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    error_msg = str(exc.orig) if hasattr(exc, "orig") else str(exc)

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    if "gate_pass_no" in error_msg.lower():
        message = "Gate pass number is already in use"
        error_code = "DUPLICATE_GATE_PASS_NUMBER"
        status_code = status.HTTP_409_CONFLICT
    elif "account_number" in error_msg.lower():
        message = "Account number is already in use at this cold storage"
        error_code = "DUPLICATE_FARMER_ACCOUNT"
        status_code = status.HTTP_409_CONFLICT
    elif "unique" in error_msg.lower():
        message = "A record with this value already exists"
        error_code = "DUPLICATE_RECORD"
        status_code = status.HTTP_409_CONFLICT
    elif "foreign key" in error_msg.lower():
        message = "Referenced record does not exist"
        error_code = "FOREIGN_KEY_VIOLATION"
    elif "not null" in error_msg.lower():
        message = "Required field is missing"
        error_code = "NULL_VALUE_NOT_ALLOWED"
    else:
        message = "Database constraint violation"
        error_code = "INTEGRITY_ERROR"

    return create_error_response(
        status_code=status_code,
        message=message,
        error_code=error_code,
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    """Handle database operational errors (connection issues, etc.)."""
    logger.error(
        f"Database operational error on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all other unhandled exceptions (Internal)."""
    logger.error(
        f"Unhandled exception on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
        exc_info=True,
    )

    # Never expose storage details to the client
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(ColdStoreException, coldstore_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, database_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
