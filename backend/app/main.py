"""Dealdesk Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .errors import register_exception_handlers
from .logging_config import configure_logging, get_logger
from .rate_limit import limiter
from .routes import (
    admin_router,
    featured_router,
    maintenance_router,
    offers_router,
    project_offers_router,
    transactions_router,
)
from .services import shutdown_services

logger = get_logger("dealdesk.main")

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings = get_settings()
    configure_logging(settings.debug)
    logger.info(f"Starting Dealdesk Backend API (debug={settings.debug})")
    yield
    # Shutdown: let queued notifications go out
    shutdown_services()
    logger.info("Shutting down Dealdesk Backend API")


app = FastAPI(
    title="Dealdesk Backend API",
    description="Offers, escrow transactions and featured placement for the project marketplace",
    version="0.1.0",
    lifespan=lifespan,
)

settings = get_settings()

# Rate limiting
limiter.enabled = settings.rate_limit_enabled
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Commerce errors -> 400/403/404/409
register_exception_handlers(app)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(offers_router, prefix=API_PREFIX)
app.include_router(project_offers_router, prefix=API_PREFIX)
app.include_router(transactions_router, prefix=API_PREFIX)
app.include_router(featured_router, prefix=API_PREFIX)
app.include_router(admin_router, prefix=API_PREFIX)
app.include_router(maintenance_router, prefix=API_PREFIX)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "dealdesk-backend",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health")
async def health():
    """Detailed health check with actual database verification."""
    from .database import PROJECTS_TABLE, get_supabase_client

    db_status = "disconnected"
    try:
        db = get_supabase_client()
        # Simple query to verify connection
        db.table(PROJECTS_TABLE).select("id").limit(1).execute()
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)[:50]}"

    overall_status = "healthy" if db_status == "connected" else "degraded"

    return {
        "status": overall_status,
        "database": db_status,
    }
