"""shiftpay API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ..config import get_settings
from ..errors import (
    ForbiddenError,
    IncompleteStateError,
    NotFoundError,
    ShiftPayError,
    UnauthenticatedError,
    ValidationError,
)
from ..logging_config import configure_logging, get_logger
from ..storage import SHIFTS_TABLE, ConstraintViolationError, DataStoreError, StoreTransportError
from .database import Store
from .rate_limit import limiter
from .routes import maintenance_router, payments_router

logger = get_logger("shiftpay.api")

# Most specific first
ERROR_STATUS: list[tuple[type[Exception], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (IncompleteStateError, status.HTTP_409_CONFLICT),
    (ConstraintViolationError, status.HTTP_409_CONFLICT),
    (StoreTransportError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def error_status(exc: Exception) -> int:
    """HTTP status for a service or store error."""
    for exc_type, code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def shiftpay_error_handler(request: Request, exc: Exception) -> JSONResponse:
    code = error_status(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=code, content={"detail": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging("DEBUG" if settings.debug else settings.log_level)
    logger.info(
        f"Starting shiftpay API (debug={settings.debug}, gateway={settings.payment_gateway})"
    )
    yield
    logger.info("Shutting down shiftpay API")


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title="shiftpay API",
        description="Shift escrow and timesheet settlement",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(ShiftPayError, shiftpay_error_handler)
    app.add_exception_handler(DataStoreError, shiftpay_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(payments_router)
    app.include_router(maintenance_router)

    @app.get("/health")
    async def health(store: Store):
        """Health check with a real store round-trip."""
        try:
            await store.fetch_many(SHIFTS_TABLE, limit=1)
            db_status = "connected"
        except DataStoreError as e:
            db_status = f"error: {str(e)[:50]}"

        return {
            "status": "healthy" if db_status == "connected" else "degraded",
            "database": db_status,
        }

    return app


app = create_app()
