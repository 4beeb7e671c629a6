"""
Adaptive Mission Engine - FastAPI Application
Main entry point for the API server.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.config import get_settings
from app.api import (
    missions_router,
    seasons_router,
    admin_bandit_router,
)
from app.api.dependencies import get_scoring_client
from app.database import async_session_maker


settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    logger.info(f"Starting {settings.app_title} v{settings.app_version}")

    # Initialize database tables (important for SQLite)
    if settings.app_env == "development":
        from app.database import init_db
        await init_db()
        logger.info("Database tables initialized")

    yield
    # Shutdown
    await get_scoring_client().aclose()
    logger.info("Shutting down...")


# Create FastAPI application
app = FastAPI(
    title=settings.app_title,
    version=settings.app_version,
    description="""
    ## Adaptive Mission Engine API

    Recommends one personal mission per two-week phase, aligned to an
    organisation-wide six-week season OKR.

    ### Features
    - **Seasons**: One org-wide OKR at a time, created on demand
    - **Missions**: UCB-adjusted Thompson Sampling over focus arms
    - **Learning**: Explicit 1-5 ratings and delayed finalized scores

    ### Main Endpoints
    - `POST /api/v1/missions/suggest` - Get the current mission
    - `POST /api/v1/missions/{id}/feedback` - Rate a mission
    - `PATCH /api/v1/missions/{id}` - Rewrite a mission
    - `POST /api/v1/missions/outcomes` - Apply a finalized score
    - `GET /api/v1/seasons/current` - Current season and phase
    - `GET /api/v1/admin/bandit/{user_id}` - Arm posteriors
    """,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(missions_router, prefix=settings.api_prefix)
app.include_router(seasons_router, prefix=settings.api_prefix)
app.include_router(admin_bandit_router, prefix=settings.api_prefix)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - health check."""
    return {
        "status": "healthy",
        "service": settings.app_title,
        "version": settings.app_version,
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with a database round trip."""
    try:
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
        database = "connected"
    except Exception as e:
        logger.warning(f"Health check database probe failed: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "database": database,
    }
