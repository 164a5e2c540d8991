# src/models/invitation.py
import uuid
from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from db.database import Base
from utils.security import get_utc_now


class InvitationStatus(str, PyEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self != InvitationStatus.PENDING


class Invitation(Base):
    __tablename__ = "invitations"
    __table_args__ = (
        # At most one accepted invitation per specialty slot
        Index(
            "uq_invitations_accepted_slot",
            "mdt_id",
            "specialty_id",
            unique=True,
            postgresql_where=text("status = 'ACCEPTED'"),
            sqlite_where=text("status = 'ACCEPTED'"),
        ),
        Index("ix_invitations_receiver_status", "receiver_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    mdt_id = Column(
        UUID(as_uuid=True),
        ForeignKey("mdts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    receiver_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    specialty_id = Column(Integer, ForeignKey("specialties.id"), nullable=True)
    status = Column(
        Enum(InvitationStatus), nullable=False, default=InvitationStatus.PENDING
    )

    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=get_utc_now)

    mdt = relationship("MDT", back_populates="invitations")
    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])
    specialty = relationship("Specialty")
