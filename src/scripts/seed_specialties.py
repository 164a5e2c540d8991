# scripts/seed_specialties.py
import argparse
import asyncio
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db.database import AsyncSessionLocal, create_tables, disconnect_db, drop_tables
from services.specialty_service import specialty_service
from utils.logger import setup_logger
from core.config import settings

logger = setup_logger("SPECIALTY_SEED")


async def seed(reset: bool = False) -> int:
    """Create tables if needed and load the default specialty catalog"""
    if reset:
        if settings.ENVIRONMENT == "production":
            logger.error("Cannot reset database in production!")
            return 0
        await drop_tables()
        logger.info("Dropped all tables")

    await create_tables()

    async with AsyncSessionLocal() as session:
        try:
            created = await specialty_service.seed_specialties(session)
        except Exception as e:
            await session.rollback()
            logger.error(f"Specialty seed failed: {e}")
            raise

    await disconnect_db()
    return created


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the specialty catalog")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="drop every table first (development only)",
    )
    args = parser.parse_args()

    count = asyncio.run(seed(reset=args.reset))
    logger.info(f"{count} specialties created")
