"""
FastAPI application factory.

The lifespan owns the shared aiohttp session and the gateway services;
both are created once and closed on shutdown.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiohttp
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from wagate.core.config.settings import Settings, settings
from wagate.core.logging.logger import get_app_logger, setup_app_logging
from wagate.gateway import GatewayServices, build_services

from .middleware.error_handler import ErrorHandlerMiddleware
from .routes import health, messages, webhooks
from .utils.error_helpers import install_exception_handlers


def _create_http_session() -> aiohttp.ClientSession:
    connector = aiohttp.TCPConnector(
        limit=100,  # Max connections
        keepalive_timeout=30,
        enable_cleanup_closed=True,
    )
    return aiohttp.ClientSession(
        connector=connector, timeout=aiohttp.ClientTimeout(total=30)
    )


def create_app(
    services: GatewayServices | None = None,
    app_settings: Settings | None = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        services: Pre-built services (tests); built from settings when omitted
        app_settings: Settings override, defaults to the environment
    """
    cfg = app_settings or (services.settings if services else settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_app_logging(cfg)
        logger = get_app_logger()
        logger.info(f"Starting wagate {cfg.version} ({cfg.environment})")

        if services is not None:
            app.state.services = services
            yield
            return

        session = _create_http_session()
        logger.info("Persistent HTTP session created - connections: 100, keepalive: 30s")
        try:
            app.state.services = await build_services(session, cfg)
        except Exception:
            await session.close()
            raise

        try:
            yield
        finally:
            logger.info("Shutting down wagate")
            await app.state.services.aclose()
            await session.close()
            logger.info("HTTP session closed")

    app = FastAPI(
        title="wagate",
        description="Multi-tenant WhatsApp messaging gateway",
        version=cfg.version,
        lifespan=lifespan,
    )
    if services is not None:
        # Usable without entering the lifespan (TestClient without a with-block)
        app.state.services = services

    app.add_middleware(ErrorHandlerMiddleware)
    install_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(webhooks.router)
    app.mount(
        "/media",
        StaticFiles(directory=cfg.media_storage_dir, check_dir=False),
        name="media",
    )
    return app
