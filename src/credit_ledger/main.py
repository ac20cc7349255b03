"""FastAPI application entry point."""
import traceback
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError

from credit_ledger.api.v1 import health, purchases
from credit_ledger.api.webhooks import asaas
from credit_ledger.config import settings
from credit_ledger.exceptions import (
    CreditLedgerError,
    GatewayError,
    InvoiceUrlTimeoutError,
    PlanNotFoundError,
    PollingCancelledError,
    PurchaseValidationError,
    TeamNotFoundError,
)
from credit_ledger.middleware.logging import LoggingMiddleware, setup_logging
from credit_ledger.schemas.error import REMEDIATION_HINTS, ErrorCode, ErrorDetail

# Setup structured logging
setup_logging()
logger = structlog.get_logger(__name__)

# Domain error -> (HTTP status, error type)
ERROR_STATUS = [
    (PurchaseValidationError, status.HTTP_400_BAD_REQUEST, "ValidationError"),
    (TeamNotFoundError, status.HTTP_404_NOT_FOUND, "NotFound"),
    (PlanNotFoundError, status.HTTP_404_NOT_FOUND, "NotFound"),
    (GatewayError, status.HTTP_502_BAD_GATEWAY, "PaymentGatewayError"),
    (InvoiceUrlTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT, "GatewayTimeout"),
    (PollingCancelledError, 499, "ClientClosedRequest"),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("application_starting", env=settings.app_env)
    yield
    logger.info("application_shutting_down")


app = FastAPI(
    title="Credit Ledger",
    description="Credit purchases, subscriptions and payment reconciliation for the Asaas gateway",
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
app.add_middleware(LoggingMiddleware)

# Mount Prometheus metrics endpoint
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


def _request_id(request: Request) -> str:
    return request.headers.get("x-request-id", f"req_{uuid.uuid4().hex[:12]}")


def _timestamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


@app.exception_handler(CreditLedgerError)
async def credit_ledger_exception_handler(request: Request, exc: CreditLedgerError) -> JSONResponse:
    """
    Handle domain errors raised by the purchase flow.

    Validation 400, missing team or plan 404, gateway failure 502,
    invoice polling timeout 504.
    """
    status_code, error_type = status.HTTP_500_INTERNAL_SERVER_ERROR, "InternalServerError"
    for exc_class, mapped_status, mapped_type in ERROR_STATUS:
        if isinstance(exc, exc_class):
            status_code, error_type = mapped_status, mapped_type
            break

    request_id = _request_id(request)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "request_rejected",
        path=request.url.path,
        method=request.method,
        request_id=request_id,
        error_type=error_type,
        code=exc.code,
        error_message=exc.message,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": error_type,
            "message": exc.message,
            "details": [ErrorDetail(code=exc.code, message=exc.message).model_dump()],
            "remediation": REMEDIATION_HINTS.get(exc.code),
            "request_id": request_id,
            "timestamp": _timestamp(),
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle Pydantic validation errors with structured response.

    Returns 422 with detailed field-level validation errors.
    """
    request_id = _request_id(request)

    code_mapping = {
        "missing": ErrorCode.MISSING_REQUIRED_FIELD,
        "literal_error": ErrorCode.INVALID_ENUM_VALUE,
        "greater_than": ErrorCode.INVALID_CREDITS,
        "decimal_parsing": ErrorCode.INVALID_AMOUNT,
    }
    details = []
    for error in exc.errors():
        details.append(
            ErrorDetail(
                code=code_mapping.get(error["type"], "validation_error"),
                message=error["msg"],
                field=".".join(str(loc) for loc in error["loc"]),
                value=error.get("input"),
            ).model_dump(mode="json")
        )

    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        request_id=request_id,
        error_count=len(details),
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "details": details,
            "remediation": "Check the API documentation for correct request format at /docs",
            "request_id": request_id,
            "timestamp": _timestamp(),
        },
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Return 503 Service Unavailable for database errors."""
    request_id = _request_id(request)

    logger.error(
        "database_error",
        path=request.url.path,
        method=request.method,
        request_id=request_id,
        error_type=type(exc).__name__,
        error_message=str(exc),
    )

    error_message = "Database temporarily unavailable" if settings.app_env == "production" else str(exc)

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "DatabaseError",
            "message": "A database error occurred",
            "details": [{"code": ErrorCode.DATABASE_ERROR, "message": error_message}],
            "remediation": REMEDIATION_HINTS.get(ErrorCode.DATABASE_ERROR),
            "request_id": request_id,
            "timestamp": _timestamp(),
        },
        headers={"Retry-After": "30"},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all other uncaught exceptions.

    Logs the full stack trace but returns a safe message to the client.
    """
    request_id = _request_id(request)

    logger.exception(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        request_id=request_id,
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        stack_trace=traceback.format_exc(),
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "InternalServerError",
            "message": "An unexpected error occurred",
            "details": [
                {
                    "code": ErrorCode.INTERNAL_ERROR,
                    "message": str(exc) if settings.debug else "Internal server error",
                }
            ],
            "remediation": "Please contact support with the request ID",
            "request_id": request_id,
            "timestamp": _timestamp(),
        },
    )


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "service": "Credit Ledger",
        "version": "0.1.0",
        "status": "operational",
        "docs": "/docs",
    }


app.include_router(health.router, tags=["Health"])
app.include_router(purchases.router, prefix="/v1", tags=["Purchases"])
app.include_router(asaas.router, tags=["Webhooks"])
