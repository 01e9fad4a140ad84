"""
FastAPI Gateway Application Factory
===================================

This is the main entry point for the gateway that sits in front of a
prebuilt static site.

Architecture:
    Browser → Gateway (this service) → static files on disk
                    ↕
            Identity provider (OAuth authorization code flow)

Routes:
    - /callback     : OAuth redirect target; exchanges the code, sets cookies
    - /logout       : Clears cookies, redirects to the provider logout
    - /healthz      : Health check
    - /*            : Site files, gated by the session marker

Configuration:
    See gateway/app/config.py. Values come from the environment / .env and
    optionally a JSON file (GATEWAY_CONFIG_FILE, or ./config.json).

Running the Service:
    Development:
        uvicorn gateway.app.main:create_app --factory --reload --port 8080

    Production:
        site-gateway
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from . import __version__
from .config import ConfigurationError, Settings, get_settings, validate_configuration
from .site import site_router
from .site.dispatcher import Dispatcher


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Configure logging
        - Report configuration warnings
        - Log service startup information

    Shutdown tasks:
        - Close the shared provider HTTP client, if this app owns it
    """
    settings: Settings = app.state.settings

    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("gateway.main")

    report = validate_configuration(settings)
    for warning in report["warnings"]:
        logger.warning(f"Configuration warning: {warning}")

    logger.info(
        f"Gateway started: {settings.base_url_str}",
        extra={
            "site_root": report["site_root"],
            "provider": settings.provider_url_str,
            "version": __version__,
        }
    )

    yield

    logger.info("Shutting down gateway")
    owned_client = getattr(app.state, "owned_http_client", None)
    if owned_client is not None:
        await owned_client.aclose()


def create_app(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management
        - The site dispatcher built from the given settings
        - Exception handlers

    Args:
        settings: Frozen settings; loaded from the environment if omitted
        http_client: Client for provider calls; one is created if omitted

    Returns:
        FastAPI: Configured application instance

    Raises:
        ConfigurationError: If settings must be loaded and are invalid
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Static Site Gateway",
        description="Authenticating gateway for a prebuilt static site",
        version=__version__,
        lifespan=lifespan,
        # every path belongs to the site
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    owned_client = None
    if http_client is None:
        owned_client = httpx.AsyncClient(timeout=settings.TOKEN_EXCHANGE_TIMEOUT_SECONDS)
        http_client = owned_client

    app.state.settings = settings
    app.state.owned_http_client = owned_client
    app.state.dispatcher = Dispatcher.from_settings(settings, http_client=http_client)

    app.include_router(site_router)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a plain 500 response.
        """
        logger = logging.getLogger("gateway.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return PlainTextResponse("Internal Server Error", status_code=500)

    return app


def run() -> None:
    """
    Console entry point: load configuration, then serve with uvicorn.

    A configuration error is fatal and exits with status 1.
    """
    try:
        settings = get_settings()
    except ConfigurationError as e:
        setup_logging("INFO")
        logging.getLogger("gateway.main").critical(str(e))
        sys.exit(1)

    setup_logging(settings.LOG_LEVEL)

    uvicorn.run(
        create_app(settings),
        host=settings.GATEWAY_HOST,
        port=settings.GATEWAY_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
