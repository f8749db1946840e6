"""
Error handling with security-compliant error sanitization.

Pipeline errors carry their own code and status. Database errors and
anything unexpected are mapped to generic responses so that internals never
leak to the caller.
"""

import logging
import re
import traceback
from typing import Any, Callable, Optional

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.exceptions import PipelineError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be logged
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'\b\d{3}-\d{2}-\d{4}\b'),  # SSN
    re.compile(r'\b\d{16}\b'),  # Credit card
]


def sanitize_error_message(message: str) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_traceback: bool = False) -> dict[str, Any]:
    """Type and sanitized message of an exception, plus the traceback in debug."""
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_traceback:
        details["traceback"] = traceback.format_exc()
    return details


def classify_exception(
    exc: Exception, method: str, path: str, debug: bool = False
) -> tuple[int, str, str, Optional[Any]]:
    """
    Map an exception to ``(status_code, error_code, message, details)`` and
    log it at the matching severity.
    """
    if isinstance(exc, PipelineError):
        level = logging.WARNING if exc.status_code in (401, 403) else logging.INFO
        logger.log(level, f"{exc.code}: {method} {path} - {sanitize_error_message(exc.message)}")
        return exc.status_code, exc.code, sanitize_error_message(exc.message), exc.details or None

    if isinstance(exc, StarletteHTTPException):
        message = sanitize_error_message(exc.detail)
        logger.warning(f"HTTP exception: {method} {path} - Status: {exc.status_code}, Message: {message}")
        return exc.status_code, "HTTP_EXCEPTION", message, None

    if isinstance(exc, RequestValidationError):
        details = format_validation_errors(exc)
        logger.warning(f"Validation error: {method} {path} - Errors: {details}")
        return status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR", "Request validation failed", details

    if isinstance(exc, IntegrityError):
        logger.error(f"Database integrity error: {method} {path}", exc_info=True)
        details = get_safe_error_details(exc, include_traceback=True) if debug else None
        return status.HTTP_409_CONFLICT, "INTEGRITY_ERROR", "Database integrity constraint violated", details

    if isinstance(exc, OperationalError):
        logger.error(f"Database operational error: {method} {path}", exc_info=True)
        return (
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "DATABASE_ERROR",
            "Database service temporarily unavailable",
            None,
        )

    if isinstance(exc, SQLAlchemyError):
        logger.error(f"SQLAlchemy error: {method} {path}", exc_info=True)
        details = get_safe_error_details(exc, include_traceback=True) if debug else None
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "DATABASE_ERROR", "A database error occurred", details

    logger.error(
        f"Unhandled exception: {method} {path} - "
        f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
        exc_info=True,
    )
    details = get_safe_error_details(exc, include_traceback=True) if debug else None
    return (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        details,
    )


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """
    Format validation errors into a user-friendly structure.

    Input values are echoed back only when they are simple and match none of
    the sensitive patterns.
    """
    errors = []
    for error in exc.errors():
        error_dict = {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        }
        input_value = error.get("input")
        if isinstance(input_value, (str, int, float, bool)):
            if not any(pattern.search(str(input_value)) for pattern in SENSITIVE_PATTERNS):
                error_dict["input"] = input_value
        errors.append(error_dict)
    return errors


def build_error_response(
    status_code: int,
    code: str,
    message: str,
    path: str,
    method: str,
    details: Optional[Any] = None,
    request_id: Optional[str] = None,
) -> JSONResponse:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "path": path,
        "method": method,
    }
    if details is not None:
        error["details"] = details
    if request_id:
        error["request_id"] = request_id
    return JSONResponse(status_code=status_code, content={"error": error})


class ErrorHandlingMiddleware:
    """
    Outermost ASGI guard.

    Exception handlers registered by ``setup_error_handlers`` cover errors
    raised inside routes; this middleware catches whatever escapes other
    middleware and still answers with the standard error body.
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
        path = scope.get("path", "unknown")
        method = scope.get("method", "unknown")
        status_code, code, message, details = classify_exception(exc, method, path, self.debug)

        request_id = None
        headers = dict(scope.get("headers") or [])
        if headers.get(b"x-request-id"):
            request_id = headers[b"x-request-id"].decode()

        return build_error_response(status_code, code, message, path, method, details, request_id)


def setup_error_handlers(app, debug: bool = False):
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Include sanitized exception details in 5xx responses
    """

    async def handle(request: Request, exc: Exception) -> JSONResponse:
        path = str(request.url.path)
        status_code, code, message, details = classify_exception(exc, request.method, path, debug)
        return build_error_response(
            status_code,
            code,
            message,
            path,
            request.method,
            details,
            request.headers.get("x-request-id"),
        )

    for exc_class in (
        PipelineError,
        StarletteHTTPException,
        RequestValidationError,
        IntegrityError,
        OperationalError,
        SQLAlchemyError,
        Exception,
    ):
        app.add_exception_handler(exc_class, handle)
