"""Shared exceptions and their FastAPI handlers."""

from typing import List, Optional

from bson.errors import InvalidId
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from logger_config import Logger
from validation import format_validation_errors


class DomainError(Exception):
    """Base domain error with customizable message and status code."""

    def __init__(self, message: str, status_code: int = 400, errors: Optional[List[str]] = None):
        self.message = message
        self.status_code = status_code
        self.errors = errors
        super().__init__(message)


class BadRequestError(DomainError):
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message, 400, errors)


class UnauthorizedError(DomainError):
    def __init__(self, message: str):
        super().__init__(message, 401)


class ForbiddenError(DomainError):
    def __init__(self, message: str):
        super().__init__(message, 403)


class NotFoundError(DomainError):
    def __init__(self, message: str):
        super().__init__(message, 404)


class ConflictError(DomainError):
    def __init__(self, message: str):
        super().__init__(message, 409)


class ServiceUnavailableError(DomainError):
    def __init__(self, message: str, status_code: int = 503):
        super().__init__(message, status_code)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        Logger.base.exception(f"Domain error: {exc.message}")
    else:
        Logger.base.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    content = {"detail": exc.message}
    if exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = format_validation_errors(exc.errors())
    Logger.base.warning(f"Validation error on {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": errors},
    )


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError) -> JSONResponse:
    key_value = (exc.details or {}).get("keyValue") or {}
    field = next(iter(key_value), "value")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content={"detail": f"{field} already exists"}
    )


async def invalid_id_handler(request: Request, exc: InvalidId) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Resource not found"})


async def database_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    Logger.base.exception(f"Database error: {exc}")
    if isinstance(exc, ConnectionFailure):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Database connection error"},
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


async def general_500_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    Logger.base.exception(f"Unhandled exception: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Starlette resolves handlers by MRO
EXCEPTION_HANDLERS = {
    DomainError: domain_error_handler,
    RequestValidationError: validation_error_handler,
    DuplicateKeyError: duplicate_key_handler,
    InvalidId: invalid_id_handler,
    PyMongoError: database_error_handler,
    Exception: general_500_exception_handler,
}


def register_exception_handlers(app):
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
