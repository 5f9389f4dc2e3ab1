"""
Application factory for creating FastAPI app instances.

This module provides functions for creating and configuring the FastAPI application
with all necessary middleware, routers, and dependencies.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from providers.registry import ProviderRegistry, build_registry

from core.exceptions import GatewayError
from core.gateway import StreamGateway
from core.logging import get_logger, set_correlation_id
from core.settings import Settings, get_settings

logger = get_logger("AppFactory")


class CorrelationIdMiddleware:
    """Middleware to set correlation ID for request tracking."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            headers = dict(scope.get("headers", []))
            correlation_id = headers.get(b"x-correlation-id", b"").decode("utf-8") or None
            set_correlation_id(correlation_id)

        await self.app(scope, receive, send)


def _format_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


def create_app(settings: Optional[Settings] = None, registry: Optional[ProviderRegistry] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings (defaults to the get_settings() singleton)
        registry: Pre-built provider registry (defaults to build_registry(settings) at startup)

    Returns:
        Configured FastAPI application instance
    """
    from fastapi.middleware.cors import CORSMiddleware
    from routers import chat, providers

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for application startup and shutdown."""
        logger.info("Application startup...")

        provider_registry = registry if registry is not None else build_registry(settings)
        if not provider_registry.frozen:
            provider_registry.freeze()

        app.state.registry = provider_registry
        app.state.gateway = StreamGateway(provider_registry, settings)

        if not provider_registry.list_available():
            logger.warning("No provider CLI found on this machine; chat requests will be rejected")

        logger.info("Application startup complete")

        yield

        logger.info("Application shutdown complete")

    app = FastAPI(title="CLI Gateway API", lifespan=lifespan)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        logger.info(f"Rejected {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        message = _format_validation_error(exc)
        logger.info(f"Rejected {request.method} {request.url.path}: {message}")
        return JSONResponse(status_code=400, content={"error": message})

    # Add correlation ID middleware for request tracking
    app.add_middleware(CorrelationIdMiddleware)

    # CORS middleware added LAST (processes requests FIRST in Starlette)
    allowed_origins = settings.get_cors_origins()
    logger.info(f"CORS allowed origins: {allowed_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat.router, prefix="/api", tags=["Chat"])
    app.include_router(providers.router, prefix="/api", tags=["Providers"])

    return app
