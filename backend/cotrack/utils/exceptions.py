"""Custom exceptions and error handling utilities."""
from fastapi import HTTPException, status
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from typing import Optional


class AppException(Exception):
    """Base exception for application errors."""
    pass


class NotFoundError(AppException):
    """Raised when a resource is not found."""
    pass


class LLMError(AppException):
    """Raised when the LLM provider call fails."""
    pass


class LLMRateLimitError(LLMError):
    """Raised when the LLM provider rejects a call with HTTP 429."""
    pass


class LLMConfigurationError(LLMError):
    """Raised when no LLM API key is configured."""
    pass


class JSONExtractionError(AppException):
    """Raised when no JSON object can be recovered from model output."""
    pass


def is_connection_error(error: Exception) -> bool:
    """True when the error means the database could not be reached."""
    if isinstance(error, OperationalError):
        return True
    return isinstance(error, DBAPIError) and bool(error.connection_invalidated)


def handle_database_error(error: Exception, operation: str) -> HTTPException:
    """
    Convert database errors to HTTP exceptions.

    Args:
        error: The database error
        operation: Description of the operation that failed

    Returns:
        HTTPException with appropriate status code
    """
    error_message = str(error)

    if is_connection_error(error):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Database unavailable during {operation}",
        )

    if isinstance(error, IntegrityError) or "unique" in error_message.lower():
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Resource already exists: {operation}",
        )

    # Default to 500 for unknown errors
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Server error during {operation}: {error_message}",
    )


def not_found_error(resource: str, identifier: Optional[str] = None) -> HTTPException:
    """
    Create a standardized 404 error.

    Args:
        resource: Name of the resource (e.g., "Session", "User")
        identifier: Optional identifier that was not found

    Returns:
        HTTPException with 404 status
    """
    message = f"{resource} not found"
    if identifier:
        message += f": {identifier}"
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)


def validation_error(message: str) -> HTTPException:
    """Create a standardized 400 validation error."""
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def forbidden_error(message: str = "Access denied") -> HTTPException:
    """Create a standardized 403 forbidden error."""
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)


def conflict_error(message: str) -> HTTPException:
    """Create a standardized 409 conflict error."""
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)
