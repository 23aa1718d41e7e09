from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from assessment_orders import __version__
from assessment_orders.config import settings
from assessment_orders.routers import health, orders
from assessment_orders.core.database import init_db, close_db
from assessment_orders.core.structured_logging import setup_logging
from assessment_orders.core.errors import OrdersError
from assessment_orders.core.errors.registry import error_registry
from assessment_orders.core.errors.middleware import (
    http_exception_handler,
    orders_error_handler,
    store_error_handler,
    store_timeout_handler,
    unhandled_exception_handler,
)
from assessment_orders.core.log_middleware import CorrelationMiddleware
from assessment_orders.services.order_processor import get_order_processor

# Initialize structured logging before any logger calls
setup_logging(settings.log_dir, log_level=settings.log_level)

logger = logging.getLogger(__name__)

# API metadata
API_TITLE = "Assessment Orders API"
API_VERSION = __version__

API_DESCRIPTION = """
## Assessment Orders

Read-only query API over assessment purchase orders, plus a background
processor that completes PENDING orders in batches.

### Endpoints
- `GET /orders`: filtered, sorted, paginated listing
- `GET /orders/summary`: count and revenue per status
- `GET /orders/{order_id}`: one order with metadata
"""

TAGS_METADATA = [
    {
        "name": "health",
        "description": "Health check endpoints for monitoring.",
    },
    {
        "name": "orders",
        "description": "Order listing, lookup and per-status summary.",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(
        "Starting %s v%s (%s)...",
        settings.app_name, API_VERSION, settings.environment,
    )

    init_db()  # Create/upgrade the order table (Alembic)
    logger.info("Database initialized")

    processor = None
    if settings.order_processor_enabled:
        processor = get_order_processor()
        processor.start()
    else:
        logger.info("Order processor disabled (ORDERS_ORDER_PROCESSOR_ENABLED=false)")

    yield

    # Shutdown
    logger.info("Shutting down %s...", settings.app_name)

    if processor is not None:
        await processor.stop()

    close_db()
    logger.info("Database connection closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        openapi_tags=TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,  # Use lifespan for startup/shutdown
    )

    # Registry is needed by the exception handlers, with or without lifespan
    error_registry.load()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    # Correlation ID middleware (request_id + correlation_id in every log)
    app.add_middleware(CorrelationMiddleware)

    # Structured error handlers
    app.add_exception_handler(OrdersError, orders_error_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)
    app.add_exception_handler(TimeoutError, store_timeout_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    # Catch-all handler so unhandled exceptions return JSON (not bare text)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(orders.router, prefix="/orders", tags=["orders"])

    @app.get("/", tags=["health"])
    async def root():
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "docs": "/docs",
            "health": "/api/health",
        }

    return app


app = create_app()
