"""Payhook: FastAPI application entry point."""

import signal
import uuid
from contextlib import asynccontextmanager

# configure_structlog MUST run before the other app imports
# (structlog caches the processor chain on first use).
from payhook.core.logging import configure_structlog
from payhook.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=_early_settings.is_production and not _early_settings.debug,
)

import structlog

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from payhook.api.responses import AsciiJSONResponse
from payhook.api.routes import api_router
from payhook.core.config import Settings, get_settings
from payhook.middleware.cache_control import setup_cache_control_middleware
from payhook.middleware.correlation import get_correlation_id, setup_correlation_middleware
from payhook.middleware.cors import setup_cors_middleware
from payhook.store.base import PaymentStore
from payhook.store.log_store import PaymentLogStore

logger = structlog.get_logger(__name__)


def _install_sigterm_handler(app: FastAPI) -> None:
    """Flip app.state.shutting_down on SIGTERM, then defer to the previous handler."""
    previous = signal.getsignal(signal.SIGTERM)

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")
        if callable(previous):
            previous(signum, frame)

    try:
        signal.signal(signal.SIGTERM, handle_sigterm)
    except ValueError:
        # Not on the main thread (e.g. TestClient); nothing to drain
        logger.debug("sigterm_handler_skipped", reason="not_main_thread")


def log_startup_banner(settings: Settings) -> None:
    logger.info(
        "server_started",
        site_url=settings.site_url,
        port=settings.port,
        webhook_url=settings.resolved_webhook_url,
        stats_url=f"{settings.site_url.rstrip('/')}/api/payment-stats",
        api_key=settings.masked_api_key,
        environment=settings.node_env,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    app.state.shutting_down = False
    _install_sigterm_handler(app)

    settings: Settings = app.state.settings
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    # Fatal: no log directory means no payment can be recorded
    app.state.payment_store.ensure_ready()
    logger.info("payment_log_ready", log_dir=settings.payment_log_dir)

    log_startup_banner(settings)

    yield

    logger.info("shutdown_complete")


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Global exception handler for HTTPException with debug_id tracking."""
    debug_id = str(uuid.uuid4())

    logger.error(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        detail=exc.detail,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors with debug_id tracking.

    Logs full exception with traceback, returns generic 500 to client.
    """
    debug_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def create_app(settings: Settings | None = None, store: PaymentStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    if store is None:
        store = PaymentLogStore(
            settings.payment_log_dir,
            write_timeout=settings.payment_log_write_timeout,
        )

    app = FastAPI(
        title=settings.app_name,
        description="Payhip payment webhook receiver and payment log API",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        default_response_class=AsciiJSONResponse,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.payment_store = store
    app.state.shutting_down = False

    # Middleware added last runs first on incoming requests
    setup_cache_control_middleware(app)
    setup_cors_middleware(app, settings.allowed_origins)
    setup_correlation_middleware(app)

    # Exception handlers
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router)

    # Front-end files, matched only after every API route
    if settings.static_dir:
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


# Create the app instance
app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("payhook.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
