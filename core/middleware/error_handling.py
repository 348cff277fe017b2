"""
Error handling middleware with error message sanitization.
Maps domain, validation and database failures onto one error envelope.
"""

import logging
import re
import traceback
from typing import Any, Callable

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.exceptions import AssignmentError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never reach a response or a log line
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+(bearer\s+)?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'postgres(ql)?(\+\w+)?://[^\s"]+', re.IGNORECASE),
]


def sanitize_error_message(message: Any) -> str:
    """
    Remove credentials and connection strings from an error message.

    Args:
        message: Original error message (non-strings are converted)

    Returns:
        Sanitized error message
    """
    sanitized = str(message) if message is not None else ""
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub("[REDACTED]", sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_traceback: bool = False) -> dict[str, Any]:
    """Describe an exception without leaking sensitive values."""
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_traceback:
        details["traceback"] = traceback.format_exc()
    return details


def build_error_body(
    code: str,
    message: str,
    path: str,
    method: str,
    details: Any = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Build the ``{"error": {...}}`` envelope shared by every handler."""
    body: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "path": path,
            "method": method,
        }
    }
    if details is not None:
        body["error"]["details"] = details
    if request_id:
        body["error"]["request_id"] = request_id
    return body


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic validation errors into field/message pairs."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        })
    return errors


class ErrorHandlingMiddleware:
    """
    Outermost safety net for exceptions that escape the route handlers.

    Domain errors and request validation errors are normally answered by the
    handlers installed with ``setup_error_handlers``; this middleware covers
    database failures and anything unexpected.
    """

    def __init__(self, app: Callable, debug: bool = False):
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = self._handle_exception(exc, scope)
            await response(scope, receive, send)

    def _handle_exception(self, exc: Exception, scope: dict) -> Response:
        """
        Translate an exception into a JSON error response.

        Args:
            exc: The exception to handle
            scope: ASGI scope for context

        Returns:
            JSONResponse with error details
        """
        request_path = scope.get("path", "unknown")
        request_method = scope.get("method", "unknown")
        details = None

        if isinstance(exc, AssignmentError):
            status_code = exc.status_code
            error_code = exc.code
            message = sanitize_error_message(exc.message)
            details = exc.details
            logger.warning(
                f"Assignment error: {request_method} {request_path} - {error_code}: {message}"
            )

        elif isinstance(exc, StarletteHTTPException):
            status_code = exc.status_code
            error_code = "HTTP_EXCEPTION"
            message = sanitize_error_message(exc.detail)
            logger.warning(
                f"HTTP exception: {request_method} {request_path} - "
                f"Status: {status_code}, Message: {message}"
            )

        elif isinstance(exc, RequestValidationError):
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
            error_code = "VALIDATION_ERROR"
            message = "Request validation failed"
            details = format_validation_errors(exc)
            logger.warning(f"Validation error: {request_method} {request_path}")

        elif isinstance(exc, (IntegrityError, StaleDataError)):
            status_code = status.HTTP_409_CONFLICT
            error_code = "CONCURRENT_MODIFICATION"
            message = "The resource was modified by another request"
            if self.debug:
                details = get_safe_error_details(exc)
            logger.error(
                f"Write conflict: {request_method} {request_path}",
                exc_info=not self.debug,
            )

        elif isinstance(exc, OperationalError):
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            error_code = "DATABASE_ERROR"
            message = "Database service temporarily unavailable"
            logger.error(
                f"Database operational error: {request_method} {request_path}",
                exc_info=True,
            )

        elif isinstance(exc, SQLAlchemyError):
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
            error_code = "DATABASE_ERROR"
            message = "A database error occurred"
            if self.debug:
                details = get_safe_error_details(exc, include_traceback=True)
            logger.error(
                f"SQLAlchemy error: {request_method} {request_path}",
                exc_info=True,
            )

        else:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
            error_code = "INTERNAL_SERVER_ERROR"
            message = "An unexpected error occurred"
            if self.debug:
                details = get_safe_error_details(exc, include_traceback=True)
            logger.error(
                f"Unhandled exception: {request_method} {request_path} - "
                f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
                exc_info=True,
            )

        request_id = None
        if "headers" in scope:
            raw = dict(scope["headers"]).get(b"x-request-id")
            if raw:
                request_id = raw.decode()

        return JSONResponse(
            status_code=status_code,
            content=build_error_body(
                error_code, message, request_path, request_method, details, request_id
            ),
        )


def setup_error_handlers(app):
    """
    Register exception handlers on a FastAPI application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(AssignmentError)
    async def assignment_error_handler(request: Request, exc: AssignmentError):
        """Handle domain errors raised by the assignment services."""
        logger.info(
            f"{request.method} {request.url.path} rejected: {exc.code}",
            extra={"request_id": getattr(request.state, "request_id", None)},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=build_error_body(
                exc.code,
                sanitize_error_message(exc.message),
                str(request.url.path),
                request.method,
                exc.details,
                getattr(request.state, "request_id", None),
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=build_error_body(
                "HTTP_EXCEPTION",
                sanitize_error_message(exc.detail),
                str(request.url.path),
                request.method,
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=build_error_body(
                "VALIDATION_ERROR",
                "Request validation failed",
                str(request.url.path),
                request.method,
                format_validation_errors(exc),
            ),
        )
