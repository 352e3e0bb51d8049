"""Error taxonomy and the handlers that turn it into the JSON error envelope."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(ApiError):
    """Missing or bad credentials (401), or a caller that may not act (403)."""

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND


class ServerError(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _format_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        messages.append(f"{'.'.join(location)}: {message}" if location else message)
    return ", ".join(messages) or "Invalid request"


async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.message, exc.status_code)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(_format_validation_errors(exc), status.HTTP_400_BAD_REQUEST)


async def handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.info("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return error_response("Duplicate field value entered", status.HTTP_400_BAD_REQUEST)


async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return error_response("Server Error", status.HTTP_500_INTERNAL_SERVER_ERROR)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(str(exc.detail), exc.status_code)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(IntegrityError, handle_integrity_error)
    app.add_exception_handler(SQLAlchemyError, handle_database_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
