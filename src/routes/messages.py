# src/routes/messages.py
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, List
from uuid import UUID
from core.config import settings
from db.database import get_db
from models.user import User
from schemas.message_schemas import MessageCreate, MessagePublic
from services.auth_service import auth_service
from services.message_service import message_service

router = APIRouter(prefix="/mdts/{mdt_id}/messages", tags=["messages"])

POLL_INTERVAL_HEADER = "X-Poll-Interval"


@router.get(
    "",
    response_model=List[MessagePublic],
    summary="List messages",
    description="Chat history oldest first; clients re-poll at the advertised interval",
)
async def list_messages(
    mdt_id: UUID,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    messages = await message_service.list_messages(db, mdt_id, current_user)
    response.headers[POLL_INTERVAL_HEADER] = str(settings.MESSAGE_POLL_INTERVAL_SECONDS)
    return [MessagePublic.model_validate(message) for message in messages]


@router.post(
    "",
    response_model=MessagePublic,
    status_code=status.HTTP_201_CREATED,
    summary="Post message",
)
async def post_message(
    mdt_id: UUID,
    message_data: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    message = await message_service.post_message(
        db, mdt_id, current_user, message_data.content
    )
    return MessagePublic.model_validate(message)
