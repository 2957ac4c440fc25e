"""
Exception handlers rendering {error, error_code, details}.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from wagate.core.errors import GatewayError, map_error_to_status
from wagate.core.logging.logger import get_logger

logger = get_logger(__name__)


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic errors into field/message/type entries."""
    return [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    status_code = map_error_to_status(exc.error_code, default_status=exc.status_code)
    if status_code >= 500:
        logger.error(
            f"{request.method} {request.url.path} failed: {exc.error_code} - "
            f"{exc.message} {exc.details or ''}"
        )
    else:
        logger.warning(
            f"{request.method} {request.url.path} rejected: {exc.error_code} - {exc.message}"
        )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = format_validation_errors(exc)
    logger.warning(
        f"{request.method} {request.url.path} invalid request: {len(errors)} error(s)"
    )
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request",
            "error_code": "VALIDATION_ERROR",
            "details": {"errors": errors},
        },
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
