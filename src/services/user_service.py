# src/services/user_service.py
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from models.user import User, UserRole
from utils.logger import setup_logger
from utils.security import generate_referral_code
from .base_service import BaseService

logger = setup_logger("USER_SERVICE")

MAX_REFERRAL_CODE_ATTEMPTS = 20


class UserService(BaseService):
    def __init__(self):
        super().__init__(User)

    async def get_by_id(self, db: AsyncSession, user_id: UUID) -> Optional[User]:
        """Get user by ID with specialties loaded"""
        return await self.get(db, user_id, options=[selectinload(User.specialties)])

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        """Get user by email (case-insensitive, emails are stored lower-case)"""
        result = await db.execute(
            select(User)
            .where(User.email == email.strip().lower())
            .options(selectinload(User.specialties))
        )
        return result.scalar_one_or_none()

    async def get_by_referral_code(
        self, db: AsyncSession, code: str
    ) -> Optional[User]:
        result = await db.execute(select(User).where(User.referral_code == code))
        return result.scalar_one_or_none()

    async def get_many_by_ids(
        self, db: AsyncSession, user_ids: List[UUID]
    ) -> List[User]:
        if not user_ids:
            return []
        result = await db.execute(select(User).where(User.id.in_(user_ids)))
        return list(result.scalars().all())

    async def list_local_peers(self, db: AsyncSession, excluding: User) -> List[User]:
        """All LOCAL users except the caller, for composing a new MDT's team"""
        result = await db.execute(
            select(User)
            .where(User.role == UserRole.LOCAL, User.id != excluding.id)
            .options(selectinload(User.specialties))
            .order_by(User.first_name, User.last_name)
        )
        users = list(result.scalars().all())
        logger.info(f"Found {len(users)} local peers for {excluding.email}")
        return users

    async def generate_unique_referral_code(self, db: AsyncSession) -> str:
        """Draw random codes until one is unused"""
        for _ in range(MAX_REFERRAL_CODE_ATTEMPTS):
            code = generate_referral_code()
            if await self.get_by_referral_code(db, code) is None:
                return code
            logger.warning("Referral code collision, regenerating")
        raise RuntimeError("Failed to generate unique referral code")


user_service = UserService()
