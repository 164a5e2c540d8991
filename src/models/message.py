# src/models/message.py
import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Index, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from db.database import Base
from utils.security import get_utc_now

MAX_MESSAGE_LENGTH = 2000


class Message(Base):
    """Append-only chat entry on an MDT"""

    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_mdt_created", "mdt_id", "created_at"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    mdt_id = Column(
        UUID(as_uuid=True), ForeignKey("mdts.id", ondelete="CASCADE"), nullable=False
    )
    author_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)

    mdt = relationship("MDT", back_populates="messages")
    author = relationship("User")
