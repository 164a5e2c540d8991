# src/services/specialty_service.py
from typing import Iterable, List, Set
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from models.specialty import Specialty
from utils.exceptions import ValidationException
from utils.logger import setup_logger
from .base_service import BaseService

logger = setup_logger("SPECIALTY_SERVICE")

DEFAULT_SPECIALTIES = [
    "Cardiology",
    "Dermatology",
    "Emergency Medicine",
    "Family Medicine",
    "Internal Medicine",
    "Neurology",
    "Obstetrics and Gynecology",
    "Oncology",
    "Pediatrics",
    "Psychiatry",
    "Surgery",
    "Other",
]


class SpecialtyService(BaseService):
    def __init__(self):
        super().__init__(Specialty)

    async def list_specialties(self, db: AsyncSession) -> List[Specialty]:
        return await self.get_multi(db, limit=1000, order_by=Specialty.name)

    async def get_by_ids(
        self, db: AsyncSession, specialty_ids: Iterable[int]
    ) -> List[Specialty]:
        """Resolve ids to specialties, failing if any id is unknown"""
        wanted: Set[int] = set(specialty_ids)
        if not wanted:
            return []

        result = await db.execute(
            select(Specialty).where(Specialty.id.in_(wanted)).order_by(Specialty.id)
        )
        found = list(result.scalars().all())

        missing = wanted - {specialty.id for specialty in found}
        if missing:
            raise ValidationException(
                f"Unknown specialty ids: {', '.join(str(i) for i in sorted(missing))}"
            )
        return found

    async def seed_specialties(
        self, db: AsyncSession, names: Iterable[str] = DEFAULT_SPECIALTIES
    ) -> int:
        """Insert missing specialties by name; existing rows are left untouched"""
        result = await db.execute(select(Specialty.name))
        existing = set(result.scalars().all())

        created = 0
        for name in names:
            if name in existing:
                continue
            db.add(Specialty(name=name))
            existing.add(name)
            created += 1

        await db.commit()
        logger.info(f"Specialty seed complete: {created} created")
        return created


specialty_service = SpecialtyService()
