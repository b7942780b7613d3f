"""
Application Exception Handling

Single AppException class for all application errors with FastAPI integration.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError


logger = logging.getLogger(__name__)


class AppException(Exception):
    """
    Unified application exception for all error scenarios.

    Usage:
        raise AppException("Invalid email or password", "UNAUTHORIZED", 401)
        raise AppException("SKU X already exists", "CONFLICT", 409, {"sku": "X"})

    Error Codes:
        - VALIDATION_ERROR (400)
        - UNAUTHORIZED (401)
        - FORBIDDEN (403)
        - <RESOURCE>_NOT_FOUND (404), e.g. ORDER_NOT_FOUND
        - CONFLICT (409)
        - DUPLICATE_ENTRY (409)
        - INTERNAL_ERROR (500)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "ORDER_NOT_FOUND")
            status_code: HTTP status code (default: 400)
            details: Additional error context (optional)
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Convert AppException to the JSON error envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict())
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Unique constraint violations that escaped a service become 409s."""
    logger.warning(f"Integrity error on {request.url.path}: {exc.orig}")
    error = AppException(
        "A record with this value already exists",
        "DUPLICATE_ENTRY",
        409
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Report pydantic request validation failures in the common envelope."""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    error = validation_error("Validation failed", {"errors": errors})
    return JSONResponse(
        status_code=error.status_code,
        content=jsonable_encoder(error.to_dict())
    )


async def model_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Filter models built inside routes fail with 400, like request bodies."""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    error = validation_error("Validation failed", {"errors": errors})
    return JSONResponse(
        status_code=error.status_code,
        content=jsonable_encoder(error.to_dict())
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValidationError, model_validation_handler)


# ============================================
# CONVENIENCE FACTORY FUNCTIONS
# ============================================

def validation_error(
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> AppException:
    """Create validation error exception."""
    return AppException(message, "VALIDATION_ERROR", 400, details)


def unauthorized(message: str = "Unauthorized") -> AppException:
    """Create unauthorized exception."""
    return AppException(message, "UNAUTHORIZED", 401)


def invalid_credentials() -> AppException:
    """Create invalid credentials exception."""
    return unauthorized("Invalid email or password")


def token_expired() -> AppException:
    """Create token expired exception."""
    return unauthorized("Token expired")


def token_invalid() -> AppException:
    """Create invalid token exception."""
    return unauthorized("Invalid token")


def invalid_refresh_token() -> AppException:
    return unauthorized("Invalid refresh token")


def forbidden(message: str = "Insufficient permissions") -> AppException:
    """Create forbidden access exception."""
    return AppException(message, "FORBIDDEN", 403)


def account_disabled(message: str = "Account has been disabled") -> AppException:
    """Create account disabled exception."""
    return AppException(message, "FORBIDDEN", 403)


def section_forbidden(section: str) -> AppException:
    """Create exception for a manager reaching outside their section."""
    return forbidden(f"You can only access {section} section")


def not_found(resource: str, resource_id: Optional[str] = None) -> AppException:
    """
    Create a <RESOURCE>_NOT_FOUND exception.

    Args:
        resource: Human-readable resource name, e.g. "Order"
        resource_id: Identifier that was looked up (optional)
    """
    code = f"{resource.upper().replace(' ', '_')}_NOT_FOUND"
    if resource_id:
        return AppException(
            f"{resource} with ID {resource_id} not found",
            code,
            404,
            {"id": resource_id}
        )
    return AppException(f"{resource} not found", code, 404)


def conflict(
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> AppException:
    """Create conflict exception."""
    return AppException(message, "CONFLICT", 409, details)


def internal_error(message: str = "Internal server error") -> AppException:
    """Create internal server error exception."""
    return AppException(message, "INTERNAL_ERROR", 500)
