# src/db/database.py
from typing import AsyncGenerator, Any, Dict
from fastapi import HTTPException
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from core.config import settings
from utils.logger import setup_logger

logger = setup_logger("DATABASE")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, **overrides: Any) -> AsyncEngine:
    """Create an async engine with pooling suited to the backend"""
    options: Dict[str, Any] = {"echo": settings.DEBUG, "future": True}

    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(
            pool_size=20,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=3600,
            pool_pre_ping=True,
            connect_args={
                "server_settings": {
                    "jit": "off",
                    "application_name": "mdt_connect",
                }
            },
        )

    options.update(overrides)
    async_engine = create_async_engine(database_url, **options)

    if database_url.startswith("sqlite"):
        # Cascades rely on FK enforcement, which SQLite leaves off by default
        event.listen(async_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    return async_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.DATABASE_URL)

# Async session factory
AsyncSessionLocal = build_session_factory(engine)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides one database session per request"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()

        except HTTPException:
            await session.rollback()
            # API errors carry their own status, let them through untouched
            raise

        except Exception as exc:
            await session.rollback()
            logger.error(f"Database session error: {exc}", exc_info=True)
            raise


async def create_tables(bind: AsyncEngine = None) -> None:
    """Create all tables from model metadata"""
    # Import models so every table is registered on Base.metadata
    import models  # noqa: F401

    target = bind or engine
    try:
        async with target.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise


async def drop_tables(bind: AsyncEngine = None) -> None:
    """Drop all tables (development and tests only)"""
    import models  # noqa: F401

    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def check_db_connection(bind: AsyncEngine = None) -> bool:
    """Check database connection health"""
    try:
        async with (bind or engine).connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def disconnect_db() -> None:
    """Disconnect from database"""
    await engine.dispose()
