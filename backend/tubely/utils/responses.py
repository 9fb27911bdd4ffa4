"""
JSON response helpers for Tubely endpoints.

Every error leaves the API as ``{"error": "<message>"}`` with the status code
chosen by the handler that hit it. The underlying cause is written to the
server log and never included in the response body.
"""

import logging
from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = logging.getLogger(__name__)


class APIError(Exception):
    """
    Raised by endpoint handlers to abort a request with a client-facing error.

    Attributes:
        status_code: HTTP status returned to the client
        message: User-facing message placed in the ``error`` field
        cause: Underlying exception, logged but not returned
    """

    def __init__(self, status_code: int, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.cause = cause


def respond_with_json(status_code: int, payload: Any) -> JSONResponse:
    """Serialize ``payload`` (models, UUIDs and datetimes included) as JSON."""
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def respond_with_error(
    status_code: int,
    message: str,
    cause: BaseException | None = None,
) -> JSONResponse:
    """
    Build the ``{"error": message}`` envelope and log the cause.

    Server errors are logged at ERROR with the traceback of ``cause``;
    client errors at INFO.
    """
    if cause is not None:
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("%s: %s", message, cause, exc_info=cause)
        else:
            logger.info("%s: %s", message, cause)
    return respond_with_json(status_code, {"error": message})


# =============================================================================
# Exception Handlers
# =============================================================================


async def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    return respond_with_error(exc.status_code, exc.message, exc.cause)


async def http_exception_handler(
    _request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    response = respond_with_error(exc.status_code, message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    return respond_with_error(status.HTTP_400_BAD_REQUEST, "Invalid request", exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for errors no handler mapped; details stay in the log."""
    logger.error(
        "Internal server error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )
    return respond_with_json(
        status.HTTP_500_INTERNAL_SERVER_ERROR, {"error": "Internal Server Error"}
    )


def register_exception_handlers(app: Any) -> None:
    """Install the error envelope handlers on a FastAPI application."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "APIError",
    "register_exception_handlers",
    "respond_with_error",
    "respond_with_json",
]
