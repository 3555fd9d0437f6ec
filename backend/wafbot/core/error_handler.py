"""
Global Error Handler Middleware
Provides standardized error responses, correlation IDs, and logging
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .exceptions import BaseAppException


logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation ID and request timing to each request"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        request.state.request_start_time = time.time()

        response = await call_next(request)

        response.headers["X-Correlation-ID"] = correlation_id
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware to handle and standardize all application errors"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)

            if hasattr(request.state, "request_start_time"):
                duration = time.time() - request.state.request_start_time
                logger.info(
                    "Request completed",
                    extra={
                        "correlation_id": getattr(request.state, "correlation_id", "unknown"),
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": response.status_code,
                        "duration_ms": round(duration * 1000, 2),
                    },
                )
            return response

        except BaseAppException as e:
            return self._handle_app_exception(request, e)

        except Exception as e:
            return self._handle_unexpected_exception(request, e)

    def _handle_app_exception(self, request: Request, exc: BaseAppException) -> JSONResponse:
        """Render application exceptions as RFC 7807 Problem Details"""
        correlation_id = getattr(request.state, "correlation_id", None)
        if correlation_id:
            exc.correlation_id = correlation_id

        logger.error(
            f"Application error: {exc.error_code} - {exc.message}",
            extra={
                "correlation_id": exc.correlation_id,
                "error_code": exc.error_code,
                "status_code": exc.status_code,
                "method": request.method,
                "path": request.url.path,
            },
            exc_info=True,
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_rfc7807(),
            headers={"Content-Type": "application/problem+json"},
        )

    def _handle_unexpected_exception(self, request: Request, exc: Exception) -> JSONResponse:
        """Render unexpected exceptions without leaking internals"""
        correlation_id = getattr(request.state, "correlation_id", "unknown")

        logger.critical(
            f"Unexpected error: {exc}",
            extra={
                "correlation_id": correlation_id,
                "error_code": "INTERNAL_SERVER_ERROR",
                "method": request.method,
                "path": request.url.path,
            },
            exc_info=True,
        )

        return JSONResponse(
            status_code=500,
            content={
                "type": "https://waf-query-bot.local/errors/internal-server-error",
                "title": "Internal Server Error",
                "status": 500,
                "detail": "An unexpected error occurred. Please try again later.",
                "instance": f"/errors/{correlation_id}",
                "correlationId": correlation_id,
            },
            headers={"Content-Type": "application/problem+json"},
        )


def setup_error_handling(app: FastAPI) -> None:
    """
    Setup error handling middleware for the FastAPI application
    """
    # Added last runs first: context must wrap the error handler
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestContextMiddleware)

    logger.info("Error handling middleware configured")
