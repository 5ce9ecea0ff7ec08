"""
Global exception handlers and custom exception classes.

Every application error is reported to clients with the same envelope:
``{"success": false, "message": <detail>, "code": <code>}``. Failures are
not signalled through the HTTP status code, so handlers answer with 200.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
import logging

# Set up logging
logger = logging.getLogger(__name__)

class AppException(Exception):
    """
    Base exception class for application-specific exceptions.
    """
    code = "app_error"

    def __init__(self, detail: str, status_code: int = status.HTTP_200_OK):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


class ValidationException(AppException):
    """Raised when required input is missing or malformed."""
    code = "validation_error"


class NotFoundException(AppException):
    """Raised when a referenced patient, doctor, appointment or record is absent."""
    code = "not_found"


class AuthenticationException(AppException):
    """Raised when the bearer token is missing, invalid or expired."""
    code = "not_authenticated"


class AuthorizationException(AppException):
    """Raised when the caller may not perform an operation."""
    code = "not_authorized"


class UploadException(AppException):
    """Raised when an attachment could not be transferred to file storage."""
    code = "upload_failed"


class PersistenceException(AppException):
    """Raised when the database rejects a write."""
    code = "persistence_error"


def error_body(message: str, code: str) -> dict:
    """Build the failure envelope shared by all handlers."""
    return {"success": False, "message": message, "code": code}


async def app_exception_handler(request: Request, exc: AppException):
    """
    Handler for application-specific exceptions.

    Args:
        request: The request that caused the exception
        exc: The exception instance

    Returns:
        JSONResponse: Standardized error response
    """
    logger.error(f"Application error [{exc.code}] on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail, exc.code)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handler for request validation exceptions.

    Args:
        request: The request that caused the exception
        exc: The validation exception instance

    Returns:
        JSONResponse: Standardized error response with validation details
    """
    logger.error(f"Validation error: {exc.errors()}")
    fields = [".".join(str(part) for part in error["loc"] if part != "body") for error in exc.errors()]
    content = error_body(f"Invalid input: {', '.join(fields)}", ValidationException.code)
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)


async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """
    Handler for database errors that escaped the service layer (reads, lookups).

    Args:
        request: The request that caused the exception
        exc: The SQLAlchemy exception instance

    Returns:
        JSONResponse: Standardized persistence error response
    """
    logger.error(f"Database error on {request.url.path}: {str(exc)}")
    content = error_body("A database error occurred", PersistenceException.code)
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)


# Register exception handlers with FastAPI app
def register_exception_handlers(app):
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
