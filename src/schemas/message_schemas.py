# src/schemas/message_schemas.py
from datetime import datetime
from uuid import UUID
from .base_schemas import BaseSchema, IDMixin
from .user_schemas import UserSummary


class MessageCreate(BaseSchema):
    # Length is enforced by the messaging service after trimming
    content: str


class MessagePublic(IDMixin):
    mdt_id: UUID
    content: str
    created_at: datetime
    author: UserSummary
