"""Standardized error handling for the application."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

# Configure logger
logger = logging.getLogger(__name__)


class EquipmartError(Exception):
    """Base exception class for all application errors."""

    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "An error occurred",
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize the error.

        Args:
            message: Human-readable error message
            status_code: HTTP status code
            code: Machine-readable error code returned to clients
            details: Additional error details (logged, never returned)
        """
        self.message = message
        self.status_code = status_code
        self.code = code or self.code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to the API error envelope.

        Returns:
            Dict of the form {"error": {"code": ..., "message": ...}}
        """
        return {"error": {"code": self.code, "message": self.message}}

    def log(self, level: int = logging.ERROR) -> None:
        """Log the error with appropriate level and context.

        Args:
            level: Logging level to use
        """
        log_context = {
            "error_type": self.__class__.__name__,
            "error_code": self.code,
            "status_code": self.status_code,
            **self.details,
        }
        logger.log(level, f"{self.message}", extra=log_context)


class InvalidParameterError(EquipmartError):
    """A request parameter failed boundary validation."""

    code = "INVALID_PARAMETER"

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=400, code=code, details=details)


class ForbiddenError(EquipmartError):
    """The caller is not allowed to perform an administrative operation."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Admin privileges required"):
        super().__init__(message=message, status_code=403)


class ServiceFailure(EquipmartError):
    """An operation failed because the listing store failed.

    Clients only see the generic message; the underlying cause goes to the logs.
    """

    def __init__(self, code: str, message: str, cause: Optional[BaseException] = None):
        details = {"cause": repr(cause)} if cause is not None else None
        super().__init__(message=message, status_code=500, code=code, details=details)


def convert_exception(exc: Exception) -> EquipmartError:
    """Convert any exception into an application error.

    Args:
        exc: The exception raised while handling a request

    Returns:
        The exception itself if it is already an application error, a generic 500 otherwise
    """
    if isinstance(exc, EquipmartError):
        return exc
    return ServiceFailure(code="INTERNAL_ERROR", message="Internal server error", cause=exc)


@contextmanager
def failure_as(code: str, message: str) -> Iterator[None]:
    """Re-raise unexpected exceptions from the wrapped block as a ServiceFailure.

    Application errors pass through unchanged.

    Args:
        code: Error code reported to the client
        message: Generic message reported to the client
    """
    try:
        yield
    except EquipmartError:
        raise
    except Exception as e:
        raise ServiceFailure(code=code, message=message, cause=e) from e
