# src/services/message_service.py
from typing import Dict, List
from uuid import UUID
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from models.message import MAX_MESSAGE_LENGTH, Message
from models.user import User
from utils.exceptions import ValidationException, handle_db_exception
from utils.logger import setup_logger
from .base_service import BaseService
from .membership_service import membership_service

logger = setup_logger("MESSAGE_SERVICE")


class MessageService(BaseService):
    def __init__(self):
        super().__init__(Message)

    async def post_message(
        self, db: AsyncSession, mdt_id: UUID, author: User, content: str
    ) -> Message:
        text = (content or "").strip()
        if not text:
            raise ValidationException("Message content is required")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationException(
                f"Message content is too long (max {MAX_MESSAGE_LENGTH} characters)"
            )

        await membership_service.require_member(
            db, mdt_id, author, "Not authorized to send messages to this MDT"
        )

        message = Message(mdt_id=mdt_id, author_id=author.id, content=text)
        try:
            db.add(message)
            await membership_service.touch(db, mdt_id)
            await db.commit()
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "post message", e)

        logger.info(f"Message {message.id} posted to MDT {mdt_id} by {author.id}")
        return await self.get(
            db,
            message.id,
            options=[selectinload(Message.author).selectinload(User.specialties)],
        )

    async def list_messages(
        self, db: AsyncSession, mdt_id: UUID, requester: User
    ) -> List[Message]:
        """Full chat history, oldest first"""
        await membership_service.require_member(
            db, mdt_id, requester, "Not authorized to view messages for this MDT"
        )

        result = await db.execute(
            select(Message)
            .where(Message.mdt_id == mdt_id)
            .options(selectinload(Message.author).selectinload(User.specialties))
            .order_by(Message.created_at, Message.id)
        )
        return list(result.scalars().all())

    async def latest_for_mdts(
        self, db: AsyncSession, mdt_ids: List[UUID]
    ) -> Dict[UUID, Message]:
        """Most recent message per MDT, keyed by MDT id"""
        if not mdt_ids:
            return {}

        ranked = (
            select(
                Message.id.label("id"),
                func.row_number()
                .over(
                    partition_by=Message.mdt_id,
                    order_by=(Message.created_at.desc(), Message.id.desc()),
                )
                .label("row_num"),
            )
            .where(Message.mdt_id.in_(mdt_ids))
            .subquery()
        )
        result = await db.execute(
            select(Message)
            .join(ranked, Message.id == ranked.c.id)
            .where(ranked.c.row_num == 1)
            .options(selectinload(Message.author).selectinload(User.specialties))
        )
        return {message.mdt_id: message for message in result.scalars().all()}


message_service = MessageService()
