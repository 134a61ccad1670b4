"""Error taxonomy and the handlers that render it as ``{"error": ...}``."""

import logging
from http import HTTPStatus
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.message}


class ValidationError(AppError):
    status = HTTPStatus.BAD_REQUEST
    message = "Invalid request"


class DuplicateUser(AppError):
    status = HTTPStatus.BAD_REQUEST
    message = "User with this phone number already exists"


class InvalidCredentials(AppError):
    status = HTTPStatus.UNAUTHORIZED
    message = "Invalid phone number or password"


class Unauthorized(AppError):
    status = HTTPStatus.UNAUTHORIZED
    message = "Invalid or expired token"


class MissingToken(Unauthorized):
    message = "Access token required"


class InvalidToken(Unauthorized):
    pass


class ExpiredToken(Unauthorized):
    pass


class Forbidden(AppError):
    status = HTTPStatus.FORBIDDEN
    message = "Insufficient permissions"


class NotFound(AppError):
    status = HTTPStatus.NOT_FOUND
    message = "Not found"


class StoreError(AppError):
    message = "Database error"


class InternalError(AppError):
    pass


def _app_error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=int(exc.status), content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": message}`` with its status code."""

    @app.exception_handler(AppError)
    async def _handle_app_error(request: Request, exc: AppError):
        return _app_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(request: Request, exc: RequestValidationError):
        # Only field locations are logged; the offending values may be secrets.
        logger.info(
            "invalid request body %s %s fields=%s",
            request.method,
            request.url.path,
            [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()],
        )
        return _app_error_response(ValidationError("Invalid request"))

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):
        logger.error(
            "unhandled %s on %s %s",
            type(exc).__name__,
            request.method,
            request.url.path,
        )
        return _app_error_response(InternalError())
