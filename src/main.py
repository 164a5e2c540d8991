# src/main.py
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator
import uvicorn as uv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware
from core.config import settings
from db.database import (
    AsyncSessionLocal,
    check_db_connection,
    create_tables,
    disconnect_db,
)
from services.specialty_service import specialty_service
from utils.exception_handler import setup_exception_handlers
from utils.logger import quiet_third_party_loggers, setup_logger
from utils.rate_limiter import limiter
from routes import (
    auth_router,
    specialties_router,
    users_router,
    mdts_router,
    messages_router,
    invitations_router,
)

quiet_third_party_loggers()

logger = setup_logger("SERVER")


async def initialize_database() -> None:
    """Create missing tables and make sure the specialty catalog exists"""
    await create_tables()

    if settings.SEED_SPECIALTIES_ON_STARTUP:
        async with AsyncSessionLocal() as session:
            try:
                await specialty_service.seed_specialties(session)
            except Exception:
                await session.rollback()
                raise


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Starting MDT Connect API...")

    try:
        if await check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database is not reachable, continuing startup")

        logger.info("Initializing database...")
        await initialize_database()

        logger.info("Application startup complete")
        yield

    except Exception as e:
        logger.error(f"Startup failed: {str(e)}")
        raise
    finally:
        logger.info("Closing database connection")
        await disconnect_db()
        logger.info("Shutting down application...")


app = FastAPI(
    title="MDT Connect",
    description="Case collaboration between local clinicians and external specialists",
    version=settings.API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
)

# Rate limiting configuration
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# Exception handling
setup_exception_handlers(app)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-Poll-Interval"],
)

for router in (
    auth_router,
    specialties_router,
    users_router,
    mdts_router,
    messages_router,
    invitations_router,
):
    app.include_router(router, prefix=settings.API_PREFIX)


@app.get("/health")
async def health_check():
    """Liveness plus database reachability"""
    db_healthy = await check_db_connection()
    return {
        "status": "healthy" if db_healthy else "degraded",
        "database": "connected" if db_healthy else "disconnected",
        "version": app.version,
        "environment": settings.ENVIRONMENT,
    }


if __name__ == "__main__":
    source_dir = os.path.dirname(os.path.abspath(__file__))
    watch_dirs = [
        os.path.join(source_dir, package)
        for package in ("core", "db", "models", "routes", "schemas", "services", "utils")
    ]

    uv.run(
        "main:app",
        host=settings.UVICORN_HOST,
        port=settings.UVICORN_PORT,
        reload=settings.RELOAD,
        reload_dirs=watch_dirs,
        workers=1 if settings.RELOAD else settings.WORKERS_COUNT,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_graceful_shutdown=settings.SHUTDOWN_GRACE_SECONDS,
    )
