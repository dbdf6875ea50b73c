"""Error taxonomy and HTTP error handling for usage collection."""

import logging
import re

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

# Regex to detect internal paths (Unix/Linux focus for container env)
_PATH_PATTERN = re.compile(r"(\/(?:app|home|var|tmp|usr|etc|opt|root|data)\/[\w\-\.\/]+)")


class UsageError(Exception):
    """Base error carrying a stable machine-readable code."""

    code = "ERR_NETWORK_USAGE"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidPeriodError(UsageError):
    code = "ERR_INVALID_PERIOD"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidCountError(UsageError):
    code = "ERR_INVALID_COUNT"
    status_code = status.HTTP_400_BAD_REQUEST


class StatsUnavailableError(UsageError):
    """The statistics subsystem could not serve a whole transport or the catalog."""

    code = "ERR_NETWORK_USAGE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class SnapshotError(UsageError):
    code = "ERR_SNAPSHOT"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def sanitize_message(msg: str) -> str:
    """
    Sanitize string messages to prevent leaking internal details.
    """
    if _PATH_PATTERN.search(msg):
        return _PATH_PATTERN.sub("[INTERNAL_PATH]", msg)
    return msg


def create_error_response(status_code: int, message: str, error_code: str | None = None) -> JSONResponse:
    content = {"detail": message}
    if error_code:
        content["code"] = error_code
    return JSONResponse(status_code=status_code, content=content)


async def usage_exception_handler(request: Request, exc: UsageError):
    """
    Handle domain errors with their stable code.
    """
    if exc.status_code >= 500:
        logger.error("Usage collection failed: %s", exc.message, extra={"data": {"path": request.url.path}})
    return create_error_response(exc.status_code, sanitize_message(exc.message), exc.code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handle explicit HTTP exceptions (e.g. 404, 403).
    """
    return create_error_response(exc.status_code, sanitize_message(str(exc.detail)))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle Pydantic validation errors.
    """
    sanitized_errors = []
    for err in exc.errors():
        loc = ".".join([str(x) for x in err.get("loc", [])])
        msg = err.get("msg", "Invalid input")
        sanitized_errors.append(f"{loc}: {msg}")

    error_msg = "; ".join(sanitized_errors)
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        f"Validation Error: {sanitize_message(error_msg)}",
        "ERR_VALIDATION",
    )


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all for unhandled exceptions.
    """
    logger.exception("Unhandled exception", extra={"data": {"path": request.url.path}})
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An internal server error occurred.",
        "INTERNAL_ERROR"
    )


def register_exception_handlers(app: FastAPI):
    """
    Registrar for all exception handlers.
    """
    app.add_exception_handler(UsageError, usage_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
