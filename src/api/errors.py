"""API error type and the handlers rendering failures into the JSON envelope."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.config import Settings
from src.schemas.auth import StandardResponse
from src.services.session import clear_user_cookies

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Failure returned to the client as ``{"success": false, "error": message}``."""

    def __init__(
        self, status_code: int, message: str, clear_session: Settings | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        # Session cookie settings to expire alongside the error
        self.clear_session = clear_session


def failure_response(status_code: int, message: str) -> JSONResponse:
    """Build an envelope response for a failed request."""
    body = StandardResponse[None](success=False, error=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _expire_session(request: Request, response: JSONResponse, settings: Settings | None) -> None:
    # Stale cookies flagged by get_optional_user_id are expired on any failure
    settings = settings or getattr(request.state, "stale_session", None)
    if settings is not None:
        clear_user_cookies(response, settings)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    response = failure_response(exc.status_code, exc.message)
    _expire_session(request, response, exc.clear_session)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"][1:])
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    logger.info(f"Rejected {request.method} {request.url.path}: {'; '.join(messages)}")
    response = failure_response(status.HTTP_400_BAD_REQUEST, "; ".join(messages))
    _expire_session(request, response, None)
    return response


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return failure_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")


def register_error_handlers(app: FastAPI) -> None:
    """Install the envelope error handlers on an application."""
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
