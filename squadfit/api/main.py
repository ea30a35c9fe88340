"""
SquadFit Progression API Server

FastAPI server exposing activity logging, member progress, teams and
leaderboards.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from squadfit.api.routes import router, limiter as routes_limiter
from squadfit.database import db
from squadfit.database.init_defaults import init_defaults
from squadfit.models.schemas import HealthResponse
from squadfit.services import redis_service, settings_service

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
# Note: Database setting will be checked after database initialization
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def apply_log_level_setting():
    """Apply the log_level setting from the database, if one is stored."""
    async with db.AsyncSessionLocal() as session:
        level_setting = await settings_service.get_setting_with_fallback(
            session, "log_level", env_var="LOG_LEVEL", default=log_level
        )
    level_name = (level_setting or log_level).upper()
    logging.getLogger().setLevel(getattr(logging, level_name, logging.INFO))
    logger.info(f"Log level set to {level_name}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info("Starting up SquadFit Progression API...")

    # Create tables that migrations have not created yet
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    # Difficulty scale, default ladder, default settings
    try:
        await init_defaults()
        await apply_log_level_setting()
    except Exception as e:
        logger.error(f"Failed to initialize defaults: {e}", exc_info=True)

    yield  # App is running

    logger.info("Shutting down SquadFit Progression API...")
    await redis_service.close_redis_connection()


app = FastAPI(
    title="SquadFit Progression API",
    description="Points, levels, teams and leaderboards for fitness competitions",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware, origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Service status and whether the Redis cache is reachable
    """
    return {
        "status": "healthy",
        "message": "API is running",
        "redis_available": await redis_service.is_redis_available(),
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
