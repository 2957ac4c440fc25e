"""
Global error handling middleware with tenant and context awareness.

Gateway errors and request-shape errors are rendered by exception handlers;
this middleware only catches what escaped them.
"""

import traceback
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from wagate.core.config.settings import settings
from wagate.core.logging.logger import get_logger


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Catches unhandled exceptions and returns a structured 500.

    Internal details are only exposed in DEV.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)

        except HTTPException as http_exc:
            await self._log_http_exception(request, http_exc)
            raise

        except Exception as exc:
            return await self._handle_unexpected_exception(request, exc)

    async def _log_http_exception(self, request: Request, exc: HTTPException) -> None:
        logger = get_logger(__name__)
        logger.warning(
            f"HTTP {exc.status_code} - {request.method} {request.url.path} - "
            f"Detail: {exc.detail}"
        )

    async def _handle_unexpected_exception(
        self, request: Request, exc: Exception
    ) -> JSONResponse:
        logger = get_logger(__name__)
        logger.error(
            f"Unhandled exception in {request.method} {request.url.path}: {exc}",
            exc_info=True,
        )

        error_response: dict[str, Any] = {
            "error": (
                "Webhook processing failed"
                if self._is_webhook_endpoint(request.url.path)
                else "Internal server error"
            ),
            "error_code": "INTERNAL_ERROR",
        }

        if settings.is_development:
            error_response["details"] = {
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "traceback": traceback.format_exc().split("\n"),
            }

        return JSONResponse(status_code=500, content=error_response)

    def _is_webhook_endpoint(self, path: str) -> bool:
        return path.startswith("/webhook/")
