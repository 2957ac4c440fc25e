"""
Health check endpoint.
"""

import time
from typing import Any

from fastapi import APIRouter, Depends

from wagate.api.dependencies import get_services
from wagate.core.logging.logger import get_logger
from wagate.gateway import GatewayServices

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(services: GatewayServices = Depends(get_services)) -> dict[str, Any]:
    """
    Liveness with version and backend status.

    Always 200; a degraded backend shows up in "services".
    """
    start_time = time.time()

    backends = await services.health()
    is_healthy = all(state != "unhealthy" for state in backends.values())

    response_time = time.time() - start_time
    health_data = {
        "status": "healthy" if is_healthy else "degraded",
        "timestamp": time.time(),
        "response_time_ms": round(response_time * 1000, 2),
        "version": services.settings.version,
        "environment": services.settings.environment,
        "services": backends,
    }

    get_logger(__name__).debug(
        f"Health check completed - Status: {health_data['status']}, "
        f"Response Time: {health_data['response_time_ms']}ms"
    )
    return health_data
