"""FastAPI application entry point."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from retail_admin.config import settings
from retail_admin.database import Base, engine
from retail_admin.dependencies import get_clock, get_store
from retail_admin.exceptions import CommitError, NotFoundError, RetailAdminError, StoreError
from retail_admin.logging_config import RequestLoggingMiddleware, get_logger, setup_logging
from retail_admin.routes import cart, inventory, invoices, orders, reference
from retail_admin.services.order_sweeper import OrderSweeper

setup_logging(
    service_name="retail-admin",
    level=settings.LOG_LEVEL,
    json_format=settings.LOG_JSON,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and run the order sweeper for the life of the process."""
    logger.info(f"Starting {settings.APP_NAME} version {settings.APP_VERSION}")
    Base.metadata.create_all(bind=engine)

    sweeper = None
    if settings.ORDER_SWEEP_ENABLED:
        store = app.dependency_overrides.get(get_store, get_store)()
        clock = app.dependency_overrides.get(get_clock, get_clock)()
        sweeper = OrderSweeper(store, clock)
        await sweeper.start()

    yield

    if sweeper is not None:
        await sweeper.stop()
    logger.info(f"Shutting down {settings.APP_NAME}")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Point-of-sale and order fulfillment administration",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


def _status_for(exc: RetailAdminError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, (CommitError, StoreError)):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


@app.exception_handler(RetailAdminError)
async def retail_admin_error_handler(request: Request, exc: RetailAdminError):
    """Translate domain errors into HTTP responses."""
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(
            f"{exc.code} on {request.method} {request.url.path}: {exc.message}",
            extra={"extra_fields": {"code": exc.code}},
        )
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})


# Include routers
app.include_router(orders.router, prefix="/api")
app.include_router(invoices.router, prefix="/api")
app.include_router(inventory.router, prefix="/api")
app.include_router(cart.router, prefix="/api")
app.include_router(reference.router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
