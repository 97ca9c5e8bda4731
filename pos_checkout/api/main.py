"""
Main FastAPI application.

Point-of-sale checkout API with:
- CORS configuration
- Error handling
- Request ID tracking
- Structured logging
- Prometheus metrics
- WebSocket payment-success channel
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pos_checkout import __version__
from pos_checkout.config import Settings, get_settings
from pos_checkout.monitoring.logging import setup_logging

from .dependencies import ServiceContainer, build_container
from .routes import checkout_router, monitoring_router, realtime_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
    """
    Application lifespan manager.

    Starts the optional expiry sweeper and releases HTTP clients on shutdown.
    """
    container: ServiceContainer = app.state.container
    settings = container.settings

    logger.info(
        "application_startup",
        app_name=settings.app_name,
        env=settings.app_env,
        settlement_enabled=settings.settlement_enabled,
        notifier_enabled=settings.notifier_enabled,
        code_mode=container.code_generator.mode.value,
        pricing_mode=settings.pricing_mode,
        currency=settings.currency,
    )

    if container.sweeper is not None:
        container.sweeper.start()

    yield

    logger.info("application_shutdown", pending_orders=len(container.store))
    if container.sweeper is not None:
        await container.sweeper.stop()
    try:
        await container.close()
    except Exception as e:
        logger.error("http_client_shutdown_error", error=str(e))


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the checkout application.

    Args:
        settings: Optional settings (loaded from the environment if not provided)
        container: Optional prebuilt services (built from settings if not provided)
        configure_logging: Whether to install the JSON logging configuration
    """
    settings = settings or (container.settings if container else get_settings())
    if configure_logging:
        setup_logging(settings)

    app = FastAPI(
        title="POS Checkout",
        description=(
            "Point-of-sale checkout backend: server-side cart pricing, KHQR payment codes, "
            "Bakong settlement polling and exactly-once payment notifications."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url="/openapi.json",
    )
    app.state.container = container or build_container(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
        """Add request ID to all requests for tracing."""
        request_id = str(uuid.uuid4())
        start_time = time.time()

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_seconds=time.time() - start_time,
            )
            return response

        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration_seconds=time.time() - start_time,
            )
            raise

        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed request bodies are invalid data, not 422s."""
        logger.warning(
            "request_validation_failed",
            path=request.url.path,
            errors=len(exc.errors()),
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid data"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Server Error"},
        )

    app.include_router(checkout_router)
    app.include_router(realtime_router)
    app.include_router(monitoring_router)

    @app.get("/", tags=["root"])
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": __version__,
            "status": "operational",
            "environment": settings.app_env,
            "settlement_enabled": settings.settlement_enabled,
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        }

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "pos_checkout.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
