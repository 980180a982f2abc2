"""Centralized error handling and logging for the Recipe Scaler API.

This module provides:
- Global exception handler for FastAPI
- Structured logging with correlation IDs
- Environment-aware error responses (generic in production, detailed in dev)
- Prevention of sensitive data leakage
"""

import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pythonjsonlogger.json import JsonFormatter
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from core.config import get_settings
from core.exceptions import DishValidationError, PersistenceError
from core.security_config import get_allowed_error_fields, is_sensitive_key
from schemas.api import ErrorResponse


# Context variable for correlation ID tracking across async calls
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


# Error type mappings for consistent responses
ERROR_TYPE_MESSAGES = {
    PersistenceError: "The dish store could not complete the request",
    ValidationError: "Invalid request data provided",
}


def get_correlation_id() -> str:
    """Get or create a correlation ID for request tracing."""
    correlation_id = _correlation_id_var.get()
    if not correlation_id:
        correlation_id = str(uuid.uuid4())
        _correlation_id_var.set(correlation_id)
    return correlation_id


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id_var.set(correlation_id)


class StructuredLogger:
    """Logger wrapper that tags records with the correlation ID.

    Keyword arguments become structured fields: they are attached to the
    record as ``fields`` (picked up by the JSON formatter in production) after
    sensitive keys are redacted.
    """

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def _log_with_context(
        self,
        level: int,
        message: str,
        extra_data: dict[str, Any] | None = None,
        exc_info: bool = False,
    ) -> None:
        correlation_id = get_correlation_id()
        fields = self._sanitize_data(extra_data or {})

        if get_settings().ENVIRONMENT != "production":
            # Human-readable: fold the fields into the message itself
            rendered = " ".join(f"{k}={v}" for k, v in fields.items())
            message = f"[{correlation_id}] {message} {rendered}".rstrip()

        self.logger.log(
            level,
            message,
            extra={"correlation_id": correlation_id, "fields": fields},
            exc_info=exc_info,
        )

    def _sanitize_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Remove or mask sensitive data from log entries."""
        if not isinstance(data, dict):
            return {}
        return {
            key: "[REDACTED]" if is_sensitive_key(key) else self._sanitize_value(value)
            for key, value in data.items()
        }

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self._sanitize_data(value)
        if isinstance(value, list):
            return [self._sanitize_value(item) for item in value]
        return value

    def info(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.ERROR, message, kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._log_with_context(logging.ERROR, message, kwargs, exc_info=True)


# Global structured logger instance
structured_logger = StructuredLogger(__name__)


class ExceptionNormalizationMiddleware(BaseHTTPMiddleware):
    """Catch any uncaught Exception and delegate to global_exception_handler."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            return await global_exception_handler(request, exc)


def _build_error_response(
    *,
    correlation_id: str,
    error_type: str,
    message: str,
    environment: str,
    details: dict[str, Any] | None = None,
    traceback_str: str | None = None,
    exception_type: str | None = None,
    validation_errors: Any | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Construct a sanitized JSON error response respecting environment rules."""
    allowed_fields = get_allowed_error_fields(environment)
    optional_fields = {
        "details": details,
        "traceback": traceback_str,
        "exception_type": exception_type,
        "validation_errors": validation_errors,
    }

    error_body: dict[str, Any] = {"correlation_id": correlation_id, "type": error_type}
    for field, value in optional_fields.items():
        if field in allowed_fields and value is not None:
            error_body[field] = value

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=error_body).model_dump(
            mode="json"
        ),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map any exception to the ErrorResponse envelope.

    HTTP errors keep their status code, request and dish validation failures
    become 422, store failures and everything unexpected become 500.
    """
    environment = get_settings().ENVIRONMENT
    correlation_id = get_correlation_id()

    if isinstance(exc, StarletteHTTPException):
        return _build_error_response(
            correlation_id=correlation_id,
            error_type="http_error",
            message="An HTTP error occurred",
            environment=environment,
            details={"detail": exc.detail},
            exception_type=exc.__class__.__name__,
            status_code=exc.status_code,
        )

    if isinstance(exc, ValidationError | RequestValidationError):
        errors = exc.errors()
        structured_logger.warning("Request validation failed", error_count=len(errors))
        return _build_error_response(
            correlation_id=correlation_id,
            error_type="validation_error",
            message=ERROR_TYPE_MESSAGES[ValidationError],
            environment=environment,
            validation_errors=errors,
            status_code=422,
        )

    if isinstance(exc, DishValidationError):
        structured_logger.warning("Dish validation failed", reason=str(exc))
        return _build_error_response(
            correlation_id=correlation_id,
            error_type="validation_error",
            message=str(exc),
            environment=environment,
            details={"reason": str(exc)},
            status_code=422,
        )

    if isinstance(exc, PersistenceError):
        cause = exc.__cause__
        structured_logger.error(
            "Persistence failure",
            reason=str(exc),
            cause_type=cause.__class__.__name__ if cause else None,
        )
        return _build_error_response(
            correlation_id=correlation_id,
            error_type="persistence_error",
            message=ERROR_TYPE_MESSAGES[PersistenceError],
            environment=environment,
            details={"reason": str(exc)},
            exception_type=cause.__class__.__name__ if cause else None,
        )

    structured_logger.exception(
        "Unhandled exception", exception_type=exc.__class__.__name__, error=str(exc)
    )
    return _build_error_response(
        correlation_id=correlation_id,
        error_type="internal_server_error",
        message="An internal error occurred",
        environment=environment,
        traceback_str="".join(traceback.format_exception(exc)).strip(),
        exception_type=exc.__class__.__name__,
    )


def setup_logging() -> None:
    """Configure root logging once: JSON in production, plain text elsewhere."""
    settings = get_settings()
    root_logger = logging.getLogger()

    # Idempotent: leave existing handlers (uvicorn, pytest) alone
    if root_logger.handlers:
        return

    log_level = logging.DEBUG if settings.ENVIRONMENT == "development" else logging.INFO

    formatter: logging.Formatter
    if settings.ENVIRONMENT == "production":
        formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(log_level)

    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    if settings.ENVIRONMENT == "production":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
