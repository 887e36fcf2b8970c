"""
FastAPI application entry point with health endpoint and service routing.

This module provides the application factory with request correlation,
structured error responses for service errors, and startup and shutdown
lifecycle handling for the database and Redis.
"""

from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from shopcore.api.deps import get_redis
from shopcore.api.errors import status_code_for
from shopcore.api.v1 import api_router
from shopcore.cache.redis_client import (
    RedisClient,
    close_redis_client,
    get_redis_client,
)
from shopcore.core.config import get_settings
from shopcore.core.exceptions import ShopError, StorageError
from shopcore.core.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    log_performance,
    set_request_id,
)
from shopcore.database.connection import (
    check_database_health,
    close_database_connections,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan: connect resources on startup, release on shutdown.
    """
    settings = get_settings()
    logger.info(
        "Application starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    with log_performance(logger, "application_startup"):
        if not await check_database_health():
            logger.warning("Database not reachable at startup")
        await get_redis_client()

    yield

    logger.info("Application shutting down")
    with log_performance(logger, "application_shutdown"):
        await close_redis_client()
        await close_database_connections()
        logger.info("Resources cleaned up successfully")


async def request_logging_middleware(request: Request, call_next):
    """
    Middleware for request logging and correlation ID management.

    Sets request ID for correlation, logs request details, and measures
    response time. Clears context after request processing.

    Args:
        request: Incoming HTTP request
        call_next: Next middleware or route handler

    Returns:
        HTTP response with X-Request-ID header
    """
    request_id = set_request_id(request.headers.get("X-Request-ID"))

    try:
        with log_performance(
            logger,
            "request_processing",
            method=request.method,
            path=request.url.path,
        ):
            response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
        )
        return response
    finally:
        clear_context()


async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    """
    Render a service error as a JSON error response.

    Business errors carry their code and details; storage errors are
    reported generically.
    """
    status_code = status_code_for(exc)

    if isinstance(exc, StorageError):
        logger.error(
            "Storage failure",
            method=request.method,
            path=request.url.path,
            error=exc.message,
            **exc.context,
        )
        content = {
            "code": exc.code,
            "message": "Service temporarily unavailable",
            "request_id": get_request_id(),
        }
    else:
        logger.info(
            "Request rejected",
            method=request.method,
            path=request.url.path,
            code=exc.code,
            status_code=status_code,
        )
        content = {**exc.to_dict(), "request_id": get_request_id()}

    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors with structured error response.

    Args:
        request: HTTP request that caused validation error
        exc: Validation exception with error details

    Returns:
        JSON response with validation error details
    """
    logger.warning(
        "Request validation failed",
        method=request.method,
        path=request.url.path,
        errors=exc.errors(),
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder(
            {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": exc.errors(),
                "request_id": get_request_id(),
            }
        ),
    )


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    configure_logging()
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Storefront cart, checkout and inventory ledger API",
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.middleware("http")(request_logging_middleware)
    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get(
        "/health",
        status_code=status.HTTP_200_OK,
        tags=["Health"],
        summary="Health check endpoint",
    )
    async def health_check(
        redis_client: Annotated[RedisClient, Depends(get_redis)],
    ) -> dict[str, str]:
        """
        Health check endpoint.

        Always returns 200 OK while the application runs; the status is
        "degraded" when the guest cart store does not answer.
        """
        redis_healthy = await redis_client.health_check()
        return {
            "status": "healthy" if redis_healthy else "degraded",
            "redis": "healthy" if redis_healthy else "unhealthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        }

    return app


app = create_app()
