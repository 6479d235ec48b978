"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError

from plangate.api.responses import error_response, gating_error_response, request_id_of
from plangate.config import settings
from plangate.database import engine
from plangate.errors import GatingError
from plangate.middleware.logging import LoggingMiddleware, setup_logging
from plangate.middleware.metrics import MetricsMiddleware
from plangate.schemas.error import ErrorCode, ErrorDetail

# Setup structured logging
setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("application_starting", env=settings.app_env, max_paid_users=settings.max_paid_users)
    yield
    await engine.dispose()
    logger.info("application_shutting_down")


app = FastAPI(
    title="Plan Gate",
    description="Plan-based usage quotas and the paid-seat waitlist",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
# Added last so it runs first and the request id is bound for everything below
app.add_middleware(LoggingMiddleware)

# Mount Prometheus metrics endpoint
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.exception_handler(GatingError)
async def gating_exception_handler(request: Request, exc: GatingError) -> JSONResponse:
    """
    Handle quota and waitlist errors.

    Status comes from the error class: 403 for plan and subscription denials,
    429 with ``Retry-After`` for the monthly limit, 409 for waitlist
    conflicts, 503 when seat capacity could not be read.
    """
    logger.info("gating_error", code=exc.code, status_code=exc.status_code)
    return gating_error_response(request, exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with field-level validation errors."""
    details = [
        ErrorDetail(
            code=ErrorCode.VALIDATION_ERROR,
            message=error["msg"],
            field=".".join(str(loc) for loc in error["loc"]),
            value=error.get("input"),
        )
        for error in exc.errors()
    ]

    logger.warning("validation_error", error_count=len(details))

    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorCode.VALIDATION_ERROR,
        "Request validation failed",
        details=details,
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Return 503 for database failures without exposing internals in production."""
    logger.error(
        "database_error",
        error_type=type(exc).__name__,
        error_message=str(exc),
    )

    message = "Database temporarily unavailable" if settings.app_env == "production" else str(exc)

    return error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        ErrorCode.DATABASE_ERROR,
        "A database error occurred",
        details=[ErrorDetail(code=ErrorCode.DATABASE_ERROR, message=message)],
        headers={"Retry-After": "30"},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return 500 with a safe message; the stack trace goes to the log."""
    logger.exception(
        "unhandled_exception",
        request_id=request_id_of(request),
        exception_type=type(exc).__name__,
    )

    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred",
        details=[
            ErrorDetail(
                code=ErrorCode.INTERNAL_ERROR,
                message=str(exc) if settings.debug else "Internal server error",
            )
        ],
    )


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "service": "Plan Gate",
        "version": "0.1.0",
        "status": "operational",
        "docs": "/docs",
    }


# Include routers
from plangate.api.v1 import admin_waitlist, checkout, cron, health, usage, waitlist

app.include_router(health.router, tags=["Health"])
app.include_router(usage.router, prefix="/v1", tags=["Usage"])
app.include_router(waitlist.router, prefix="/v1", tags=["Waitlist"])
app.include_router(checkout.router, prefix="/v1", tags=["Checkout"])
app.include_router(admin_waitlist.router, prefix="/v1", tags=["Admin"])
app.include_router(cron.router, prefix="/v1", tags=["Cron"])
