"""API error handling: consistent error responses.

Registers FastAPI exception handlers that convert domain exceptions into
standardised ``{"error": {"code": "...", "message": "..."}}`` JSON responses.

Status code mapping:
- ``TicketValidationError`` → 400 Bad Request
- ``NotionRequestError`` (Notion query or write failed) → 502 Bad Gateway
- ``ConfigurationError`` / ``NotionSchemaError`` → 500 Internal Server Error
- Any other ``Exception`` → 500 Internal Server Error
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from notion_calendar.api.models import ErrorDetail, ErrorResponse
from notion_calendar.errors import (
    ConfigurationError,
    NotionRequestError,
    NotionSchemaError,
    TicketValidationError,
)

logger = logging.getLogger(__name__)


def _error_response(status_code: int, code: str, message: str, details: dict | None = None):
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _handle_validation_error(
    request: Request,
    exc: TicketValidationError,
) -> JSONResponse:
    """Return 400 for rejected ticket input."""
    logger.info("Validation error: %s", exc)
    return _error_response(400, "VALIDATION_ERROR", str(exc))


async def _handle_notion_request_error(
    request: Request,
    exc: NotionRequestError,
) -> JSONResponse:
    """Return 502 when the Notion API rejected or failed a request."""
    logger.warning("Notion %s failed on %s: %s", exc.operation, request.url.path, exc)
    return _error_response(
        502,
        "UPSTREAM_QUERY_ERROR" if exc.operation == "query" else "UPSTREAM_WRITE_ERROR",
        str(exc),
        {"status_code": exc.status_code},
    )


async def _handle_configuration_error(
    request: Request,
    exc: ConfigurationError,
) -> JSONResponse:
    """Return 500 with the missing setting named in the message."""
    logger.error("Configuration error on %s: %s", request.url.path, exc)
    return _error_response(500, "CONFIGURATION_ERROR", str(exc))


async def _handle_schema_error(
    request: Request,
    exc: NotionSchemaError,
) -> JSONResponse:
    logger.error("Notion schema error on %s: %s", request.url.path, exc)
    return _error_response(500, "SCHEMA_ERROR", str(exc))


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that catches any unhandled exception and returns a 500.

    This sits above the Starlette exception handler layer, ensuring that
    even exceptions not caught by ``add_exception_handler`` are converted
    to the standard error envelope rather than bubbling up as raw 500s.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            return _error_response(500, "INTERNAL_ERROR", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application.

    Call this from ``create_app()`` after constructing the ``FastAPI`` instance.
    """
    app.add_exception_handler(TicketValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(NotionRequestError, _handle_notion_request_error)  # type: ignore[arg-type]
    app.add_exception_handler(ConfigurationError, _handle_configuration_error)  # type: ignore[arg-type]
    app.add_exception_handler(NotionSchemaError, _handle_schema_error)  # type: ignore[arg-type]
    app.add_middleware(CatchAllErrorMiddleware)
