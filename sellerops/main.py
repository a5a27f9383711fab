from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from sellerops.config import settings
from sellerops.api.v1.router import api_router
from sellerops.database import init_db, async_session_factory
from sellerops.jobs.scheduler import start_scheduler, shutdown_scheduler, get_job_status
from sellerops.services.marketplace_service import MarketplaceError, create_http_client

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create missing tables
    - Open the shared marketplace HTTP client
    - Start the background scheduler when enabled
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await init_db()
    app.state.http_client = create_http_client()

    if settings.SCHEDULER_ENABLED:
        start_scheduler()

    yield

    shutdown_scheduler()
    await app.state.http_client.aclose()
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Coupang Sync", "description": "Seller-shipped orders, Rocket Growth orders and revenue"},
    {"name": "Naver Sync", "description": "SmartStore product orders"},
    {"name": "Sync Logs", "description": "Audit trail of sync runs"},
    {"name": "Product Mappings", "description": "Marketplace listing to catalog product rules"},
    {"name": "Sales", "description": "Sales quantities per product and channel"},
    {"name": "Order Quality", "description": "Misclassified orders, duplicate items, mapping conflicts"},
    {"name": "Inventory", "description": "Fulfillment-center stock and change history"},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Marketplace order, revenue and inventory sync for Coupang and Naver SmartStore.",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(MarketplaceError)
async def marketplace_exception_handler(request: Request, exc: MarketplaceError):
    """Upstream marketplace failures surface as 502."""
    logger.error(f"{request.method} {request.url.path} failed upstream ({exc.marketplace}): {exc.message}")
    return JSONResponse(
        status_code=502,
        content={
            "success": False,
            "error": exc.message,
            "marketplace": exc.marketplace,
            "error_code": exc.error_code,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    # Preserve HTTP status code for HTTPException, default to 500 for others
    if isinstance(exc, HTTPException):
        status_code = exc.status_code
        error_message = exc.detail
    else:
        status_code = 500
        error_message = str(exc)
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error_message,
            "type": type(exc).__name__,
            "path": str(request.url.path),
        },
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        },
        "jobs": get_job_status(),
    }

    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
