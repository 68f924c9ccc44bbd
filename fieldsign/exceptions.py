"""
Custom exceptions and error handlers.
"""
import logging
from typing import Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fieldsign.errors import (
    EmptyFieldSet,
    IntegrityMismatch,
    InvalidDocument,
    InvalidFieldValue,
    InvalidGeometry,
    InvalidStateTransition,
    MissingPageGeometry,
    SigningError,
    UnsupportedAssetFormat,
)
from fieldsign.storage import NotFound
from fieldsign.utils.logging import get_request_id

logger = logging.getLogger(__name__)


# HTTP status for each core error; subclasses not listed fall back to 500
STATUS_BY_ERROR: Dict[type, int] = {
    InvalidGeometry: 422,
    UnsupportedAssetFormat: 422,
    MissingPageGeometry: 422,
    InvalidFieldValue: 422,
    InvalidDocument: 422,
    EmptyFieldSet: 400,
    IntegrityMismatch: 409,
    InvalidStateTransition: 409,
}

# Error codes that override the class status
STATUS_BY_CODE: Dict[str, int] = {
    "DOCUMENT_TOO_LARGE": 413,
}


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message)


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            status_code=404,
            code="NOT_FOUND",
            message=f"{resource} not found: {resource_id}",
        )


def status_for(exc: SigningError) -> int:
    """HTTP status code for a core error."""
    if exc.code in STATUS_BY_CODE:
        return STATUS_BY_CODE[exc.code]
    for error_type in type(exc).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return 500


def build_error_response(
    status_code: int,
    code: str,
    message: str,
    details: Optional[dict] = None,
) -> dict:
    """Build standardized error response."""
    response = {
        "error": True,
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        response["details"] = details
    return response


async def app_exception_handler(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    """Handle application exceptions."""
    logger.warning(f"AppException: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_response(
            exc.status_code,
            exc.code,
            exc.message,
            exc.details,
        ),
    )


async def signing_error_handler(
    request: Request,
    exc: SigningError,
) -> JSONResponse:
    """Handle errors raised by the placement, embedding and audit code."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"SigningError: {exc.code} - {exc.message}")
    else:
        logger.warning(f"SigningError: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=build_error_response(status_code, exc.code, exc.message, exc.details),
    )


async def not_found_handler(
    request: Request,
    exc: NotFound,
) -> JSONResponse:
    """Handle lookups of unknown documents and fields."""
    error = NotFoundError(exc.resource, exc.resource_id)
    return await app_exception_handler(request, error)


async def http_exception_handler(
    request: Request,
    exc: HTTPException,
) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(f"HTTPException: {exc.status_code} - {exc.detail}")

    # Extract code and message from detail if structured
    if isinstance(exc.detail, dict):
        code = exc.detail.get("code", "HTTP_ERROR")
        message = exc.detail.get("message", str(exc.detail))
    else:
        code = "HTTP_ERROR"
        message = str(exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_response(exc.status_code, code, message),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle request body validation errors."""
    logger.warning(f"ValidationError: {exc.errors()}")

    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=422,
        content=build_error_response(
            422,
            "VALIDATION_ERROR",
            "Request validation failed",
            {"errors": errors},
        ),
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")

    return JSONResponse(
        status_code=500,
        content=build_error_response(
            500,
            "INTERNAL_ERROR",
            "An unexpected error occurred",
        ),
    )
