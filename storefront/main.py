"""Storefront API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.api.coupons import router as coupons_router
from storefront.api.cron import router as cron_router
from storefront.api.health import router as health_router
from storefront.api.inventory import router as inventory_router
from storefront.api.middleware import setup_middleware
from storefront.api.orders import router as orders_router
from storefront.api.payments import router as payments_router
from storefront.api.shipping import router as shipping_router
from storefront.domain.exceptions import DomainError
from storefront.infrastructure.cache import get_product_cache
from storefront.infrastructure.config import settings
from storefront.infrastructure.database import dispose_engine
from storefront.infrastructure.logging_config import configure_logging
from storefront.infrastructure.notifications import get_notification_dispatcher

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    # Startup
    configure_logging()
    logger.info(
        "storefront_api_starting",
        version=settings.api_version,
        debug=settings.debug,
        store_backend=settings.store_backend,
    )

    yield

    # Shutdown: let in-flight notifications finish before closing clients
    dispatcher = get_notification_dispatcher()
    if dispatcher.pending:
        logger.info("waiting_for_notifications", pending=dispatcher.pending)
    await dispatcher.wait_idle()
    await get_product_cache().close()
    await dispose_engine()
    logger.info("storefront_api_stopped")


app = FastAPI(
    title="Storefront API",
    description="Order fulfillment backend for the storefront",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(orders_router)
app.include_router(payments_router)
app.include_router(shipping_router)
app.include_router(coupons_router)
app.include_router(inventory_router)
app.include_router(cron_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    """Render the standard error envelope."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error_code": error_code,
            "message": message,
            "details": jsonable_encoder(details or {}),
            "request_id": getattr(request.state, "request_id", None),
        },
    )


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Render domain errors with their own code and status."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "domain_error",
        path=request.url.path,
        error_code=exc.error_code,
        status_code=exc.status_code,
        message=exc.message,
    )
    return error_response(request, exc.status_code, exc.error_code, exc.message, exc.details)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", {})
    else:
        error_code = "ERROR"
        message = str(detail)
        details = {}
    return error_response(request, exc.status_code, error_code, message, details)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render malformed request bodies in the standard envelope."""
    return error_response(
        request,
        422,
        "INVALID_REQUEST",
        "Request validation failed",
        {"errors": exc.errors()},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    logger.exception(
        "unhandled_exception_in_handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return error_response(request, 500, "INTERNAL_ERROR", "An internal error occurred")
