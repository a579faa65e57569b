"""
Custom exceptions and error handlers for consistent error responses.

Every failure surfaces as {"error_code", "kind", "message", "details"} with
an HTTP status derived from its kind:

    NotFound                -> 404
    Conflict                -> 409
    Unauthorized            -> 401
    Forbidden               -> 403
    ExternalServiceFailure  -> 502
    Validation              -> 400 (422 for request-body schema errors)
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict

logger = logging.getLogger(__name__)


class ErrorKind:
    """Stable error kinds exposed to API clients."""
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    EXTERNAL_SERVICE_FAILURE = "ExternalServiceFailure"
    VALIDATION = "Validation"
    INTERNAL = "Internal"


class AppException(Exception):
    """Base application exception."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, resource_id: Any = None, message: str = None):
        if message is None:
            message = f"{resource} not found"
            if resource_id:
                message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class ConflictError(AppException):
    """Raised when a state transition is invalid for the entity's current state."""

    kind = ErrorKind.CONFLICT

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class ValidationError(AppException):
    """Raised when a required field is missing or malformed."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    kind = ErrorKind.FORBIDDEN

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class TokenRevokedError(AppException):
    """Raised when token has been revoked."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self):
        super().__init__(
            message="Token has been revoked",
            error_code="ERR_AUTH_002",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class ExternalServiceError(AppException):
    """Raised when the database or the payment processor is unreachable or times out."""

    kind = ErrorKind.EXTERNAL_SERVICE_FAILURE

    def __init__(self, service: str, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_EXTERNAL_001",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"service": service, **(details or {})}
        )


class PaymentRejectedError(ExternalServiceError):
    """Raised when the payment processor rejects a request on business grounds."""

    def __init__(self, message: str, processor_error: Dict[str, Any] = None):
        super().__init__(
            service="payment_processor",
            message=message,
            details={"processor_error": processor_error or {}}
        )
        self.error_code = "ERR_EXTERNAL_002"


# Global Exception Handlers

def _error_body(error_code: str, kind: str, message: Any, details: Dict[str, Any]) -> dict:
    return {
        "error_code": error_code,
        "kind": kind,
        "message": message,
        "details": details
    }


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.kind == ErrorKind.UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(_error_body(exc.error_code, exc.kind, exc.message, exc.details)),
        headers=headers
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code and kind
    error_map = {
        400: ("ERR_BAD_REQUEST", ErrorKind.VALIDATION),
        401: ("ERR_UNAUTHORIZED", ErrorKind.UNAUTHORIZED),
        403: ("ERR_FORBIDDEN", ErrorKind.FORBIDDEN),
        404: ("ERR_NOT_FOUND", ErrorKind.NOT_FOUND),
        409: ("ERR_CONFLICT", ErrorKind.CONFLICT),
        502: ("ERR_BAD_GATEWAY", ErrorKind.EXTERNAL_SERVICE_FAILURE),
        500: ("ERR_INTERNAL_SERVER", ErrorKind.INTERNAL)
    }

    error_code, kind = error_map.get(exc.status_code, ("ERR_UNKNOWN", ErrorKind.INTERNAL))

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(error_code, kind, exc.detail, {}),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder(_error_body(
            "ERR_VALIDATION",
            ErrorKind.VALIDATION,
            "Validation error",
            {"errors": exc.errors()}
        ))
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            "ERR_INTERNAL_SERVER",
            ErrorKind.INTERNAL,
            "An internal server error occurred",
            {}
        )
    )
