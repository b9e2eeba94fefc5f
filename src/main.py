"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.middleware.error_handler import (
    error_handler_middleware,
    request_validation_exception_handler,
)
from src.api.middleware.latency_logging import latency_logging_with_stats_middleware
from src.api.middleware.request_size import request_size_limit_middleware
from src.api.routes import admin_orders, health, orders
from src.core.config import Settings, get_settings
from src.core.rate_limiter import InMemoryRateLimitStorage, RateLimitConfig
from src.core.supabase import get_supabase_client
from src.services.email_templates import OrderEmailComposer
from src.services.notification_service import NotificationDispatcher, ResendMailer
from src.services.order_admin_service import OrderAdminService
from src.services.order_intake_service import OrderIntakeService
from src.services.order_store import OrderStore
from src.services.order_tracking_service import OrderTrackingService
from src.services.reference_allocator import ReferenceAllocator
from src.services.status_engine import StatusEngine

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_services(app: FastAPI, settings: Settings) -> None:
    """Construct the order collaborators once and attach them to app state.

    Args:
        app: FastAPI application instance.
        settings: Application settings.
    """
    client = get_supabase_client()
    store = OrderStore(client, timeout_seconds=settings.store_timeout_seconds)
    allocator = ReferenceAllocator(store, prefix=settings.reference_prefix)
    status_engine = StatusEngine(store, strict=settings.strict_status_transitions)
    dispatcher = NotificationDispatcher(
        ResendMailer(settings.resend_api_key, settings.email_from_address),
        workers=settings.notification_workers,
        queue_size=settings.notification_queue_size,
        timeout_seconds=settings.notification_timeout_seconds,
        max_retries=settings.notification_max_retries,
        retry_backoff_seconds=settings.notification_retry_backoff_seconds,
    )
    composer = OrderEmailComposer(settings.site_url, settings.admin_recipient)

    app.state.supabase_client = client
    app.state.store = store
    app.state.dispatcher = dispatcher
    app.state.intake_service = OrderIntakeService(
        store,
        allocator,
        dispatcher,
        composer,
        max_attempts=settings.reference_max_attempts,
    )
    app.state.tracking_service = OrderTrackingService(store)
    app.state.admin_service = OrderAdminService(
        store,
        status_engine,
        dispatcher,
        composer,
        max_attachments=settings.max_reply_attachments,
        max_attachment_bytes=settings.max_attachment_bytes,
    )
    app.state.track_rate_limiter = InMemoryRateLimitStorage(RateLimitConfig.from_settings())


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control back to the application.
    """
    # Startup
    settings = get_settings()
    logger.info("Starting %s in %s mode", settings.app_name, settings.app_env)

    if not hasattr(app.state, "intake_service"):
        build_services(app, settings)

    await app.state.dispatcher.start()
    await app.state.track_rate_limiter.start_cleanup_task()
    logger.info("Order services initialized")

    yield
    # Shutdown
    await app.state.track_rate_limiter.stop_cleanup_task()
    await app.state.dispatcher.stop()
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Reborn Orders API",
        description="Order intake, fulfillment tracking and back office order management",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add error handler middleware (renders errors raised by routes and dependencies)
    app.add_middleware(BaseHTTPMiddleware, dispatch=error_handler_middleware)

    # Add latency logging middleware (tracks request timing)
    app.add_middleware(BaseHTTPMiddleware, dispatch=latency_logging_with_stats_middleware)

    # Add request size limit middleware (rejects oversized requests early)
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_size_limit_middleware)

    # Request body validation failures are client errors (400)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

    # Mount health routes at root level (no prefix)
    app.include_router(health.router)

    api_v1_router = APIRouter(prefix="/api/v1")
    api_v1_router.include_router(orders.router)
    api_v1_router.include_router(admin_orders.router)

    app.include_router(api_v1_router)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
