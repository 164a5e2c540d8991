# src/services/membership_service.py
from uuid import UUID
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from models.mdt import MDT, mdt_members
from models.user import User
from utils.exceptions import ForbiddenException, NotFoundException
from utils.logger import setup_logger
from utils.security import get_utc_now

logger = setup_logger("MEMBERSHIP_SERVICE")


class MembershipService:
    """MDT membership checks shared by the case, invitation and chat services"""

    async def exists(self, db: AsyncSession, mdt_id: UUID) -> bool:
        result = await db.execute(select(MDT.id).where(MDT.id == mdt_id))
        return result.first() is not None

    async def is_member(self, db: AsyncSession, mdt_id: UUID, user_id: UUID) -> bool:
        result = await db.execute(
            select(mdt_members.c.user_id).where(
                mdt_members.c.mdt_id == mdt_id, mdt_members.c.user_id == user_id
            )
        )
        return result.first() is not None

    async def require_member(
        self, db: AsyncSession, mdt_id: UUID, user: User, detail: str
    ) -> None:
        """404 when the MDT is absent, 403 when the user is not on the team"""
        if not await self.exists(db, mdt_id):
            raise NotFoundException("MDT not found")
        if not await self.is_member(db, mdt_id, user.id):
            logger.warning(f"Non-member {user.id} denied on MDT {mdt_id}")
            raise ForbiddenException(detail)

    async def add_member(self, db: AsyncSession, mdt_id: UUID, user_id: UUID) -> bool:
        """Add a member inside the caller's transaction; no-op if already present"""
        if await self.is_member(db, mdt_id, user_id):
            return False
        await db.execute(insert(mdt_members).values(mdt_id=mdt_id, user_id=user_id))
        logger.info(f"Added member {user_id} to MDT {mdt_id}")
        return True

    async def touch(self, db: AsyncSession, mdt_id: UUID) -> None:
        """Bump the MDT's activity timestamp"""
        await db.execute(
            update(MDT)
            .where(MDT.id == mdt_id)
            .values(updated_at=get_utc_now())
            .execution_options(synchronize_session=False)
        )


membership_service = MembershipService()
