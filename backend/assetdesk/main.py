"""
FastAPI application entry point for AssetDesk.

This is the main app that:
- Initializes FastAPI with CORS
- Registers all API routers
- Provides health check endpoint
- Sets up database connection lifecycle
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from assetdesk.config import settings
from assetdesk import database
# Import models so Base.metadata knows about all tables
from assetdesk import models  # noqa: F401
# Import API routers
from assetdesk.api import approvals, approval_events, assets, users, notifications

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    On startup: optionally create tables (dev only; production runs alembic)
    On shutdown: Close database connections gracefully
    """
    # Startup
    logger.info("🚀 Starting AssetDesk API...")
    logger.info(f"📊 Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else 'configured'}")
    logger.info(f"🔧 Debug mode: {settings.debug}")

    if settings.auto_create_tables:
        async with database.engine.begin() as conn:
            await conn.run_sync(database.Base.metadata.create_all)
        logger.info("🗄️ Tables created")

    yield

    # Shutdown
    logger.info("👋 Shutting down AssetDesk API...")
    await database.engine.dispose()


# Initialize FastAPI app
app = FastAPI(
    title="AssetDesk API",
    description="API for facilities asset approvals",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
)

# Configure CORS
# Set ALLOWED_ORIGINS environment variable with comma-separated domains
allowed_origins = [
    "http://localhost:5173",  # Local browser client
]
if settings.allowed_origins:
    allowed_origins.extend(o.strip() for o in settings.allowed_origins.split(',') if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check including database connectivity."""
    try:
        async with database.AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "database": "disconnected"},
        )
    return {
        "status": "healthy",
        "database": "connected",
        "service": "AssetDesk API",
        "version": "1.0.0",
    }


# Register API routers
app.include_router(approvals.router, prefix="/api/approvals", tags=["approvals"])
app.include_router(approval_events.router, prefix="/api/approval-events", tags=["approvals"])
app.include_router(assets.router, prefix="/api/assets", tags=["assets"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"])
