"""Middleware and exception handlers for request processing."""

import logging
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import settings
from .errors import EquipmartError, convert_exception

# Configure logger
logger = logging.getLogger(__name__)


def error_response(error: EquipmartError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def equipmart_error_handler(request: Request, exc: EquipmartError) -> JSONResponse:
    """Render application errors raised by endpoints as the error envelope."""
    exc.log(logging.WARNING if exc.status_code < 500 else logging.ERROR)
    return error_response(exc)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch-all for exceptions that escape the endpoints."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            error = convert_exception(exc)
            logger.exception(f"Unhandled error on {request.method} {request.url.path}")
            return error_response(error)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging request details."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request method, path, status and timing.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            The response
        """
        start_time = time.time()
        path = request.url.path
        method = request.method
        client = request.client.host if request.client else "unknown"

        response = await call_next(request)

        log_dict = {
            "path": path,
            "method": method,
            "client": client,
            "status_code": response.status_code,
            "process_time_ms": round((time.time() - start_time) * 1000, 2),
        }

        if response.status_code >= 500:
            logger.error(f"Request failed: {method} {path}", extra=log_dict)
        elif response.status_code >= 400:
            logger.warning(f"Request error: {method} {path}", extra=log_dict)
        else:
            logger.info(f"Request processed: {method} {path}", extra=log_dict)

        return response


def setup_middleware(app: FastAPI) -> None:
    """Set up error handling and request logging for the application.

    Args:
        app: The FastAPI application
    """
    app.add_exception_handler(EquipmartError, equipmart_error_handler)
    app.add_middleware(ErrorHandlingMiddleware)
    if settings.logging.enable_request_logging:
        app.add_middleware(RequestLoggingMiddleware)
