"""
Application exception classes and the global handlers that render them.
"""
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from database.database import DatabaseConnectionError
from utils.state import State


class AppException(Exception):
    """
    Base exception class for application-specific exceptions.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(AppException):
    status_code = status.HTTP_404_NOT_FOUND


class DuplicateFileNumberError(AppException):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, file_number: str):
        super().__init__(
            f"File number {file_number} already exists. Please use a different file number."
        )
        self.file_number = file_number


class ForbiddenError(AppException):
    status_code = status.HTTP_403_FORBIDDEN


class InvalidUploadError(AppException):
    status_code = status.HTTP_400_BAD_REQUEST


class StorageError(AppException):
    """The object store rejected an upload, removal or URL request."""

    status_code = status.HTTP_502_BAD_GATEWAY


class MetadataError(AppException):
    """A photo metadata row could not be written or removed."""


async def app_exception_handler(request: Request, exc: AppException):
    """
    Handler for application-specific exceptions.

    Args:
        request: The request that caused the exception
        exc: The exception instance

    Returns:
        JSONResponse: Standardized error response
    """
    State.logger.error(f"Application error on {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    State.logger.error(f"Validation error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Validation error", "errors": jsonable_errors(exc)},
    )


async def database_unavailable_handler(request: Request, exc: DatabaseConnectionError):
    State.logger.error(f"Database unavailable on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database unavailable"},
    )


def jsonable_errors(exc: RequestValidationError):
    # ctx may hold the raw exception object and input may hold upload bytes
    return [
        {key: value for key, value in error.items() if key not in ("ctx", "input")}
        for error in exc.errors()
    ]


def register_exception_handlers(app):
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DatabaseConnectionError, database_unavailable_handler)
