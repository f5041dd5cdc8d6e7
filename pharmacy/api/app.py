"""
FastAPI application for the medication order fulfillment backend.

The HTTP layer is thin: it resolves the caller from request headers, hands
everything else to the use cases and maps the fulfillment error taxonomy
onto status codes in one exception handler.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_pagination import add_pagination
from fastapi_pagination.utils import disable_installed_extensions_check

from pharmacy.api.dependencies import close_dependencies
from pharmacy.api.responses import ErrorResponse, HealthCheckResponse
from pharmacy.api.routers import medication_requests, orders
from pharmacy.errors import (
    ConflictError,
    ForbiddenError,
    FulfillmentError,
    InsufficientStockError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    PaymentFailedError,
)

disable_installed_extensions_check()

API_VERSION = "1.0.0"

ERROR_STATUS_CODES: List[Tuple[Type[FulfillmentError], int]] = [
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (ConflictError, 409),
    (InvalidStateError, 400),
    (InvalidTransitionError, 400),
    (InsufficientStockError, 400),
    (PaymentFailedError, 400),
]


def setup_logging() -> None:
    """Configure logging based on environment variables"""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_format = os.environ.get(
        "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {log_level}, defaulting to INFO")
        numeric_level = logging.INFO

    logging.basicConfig(level=numeric_level, format=log_format, force=True)


# Setup logging when module is imported
setup_logging()
logger = logging.getLogger(__name__)


def status_code_for(error: FulfillmentError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await close_dependencies()


app = FastAPI(
    title="Medication Order Fulfillment API",
    version=API_VERSION,
    lifespan=lifespan,
)

app.include_router(orders.router, prefix="/orders", tags=["orders"])
app.include_router(
    medication_requests.router, prefix="/requests", tags=["requests"]
)

# Add pagination support
_ = add_pagination(app)


@app.exception_handler(FulfillmentError)
async def fulfillment_error_handler(
    request: Request, exc: FulfillmentError
) -> JSONResponse:
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc),
            "status_code": status_code,
        },
    )
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=type(exc).__name__, detail=str(exc)
        ).model_dump(),
    )


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint"""
    logger.debug("Health check requested")
    return HealthCheckResponse(
        status="ok",
        version=API_VERSION,
        timestamp=datetime.now(timezone.utc),
    )
