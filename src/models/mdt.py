# src/models/mdt.py
import uuid
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from db.database import Base
from utils.security import get_utc_now


class MDTStatus(str, PyEnum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


mdt_members = Table(
    "mdt_members",
    Base.metadata,
    Column(
        "mdt_id",
        UUID(as_uuid=True),
        ForeignKey("mdts.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "user_id",
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class MDT(Base):
    """A multi-disciplinary team formed around one patient case"""

    __tablename__ = "mdts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    status = Column(Enum(MDTStatus), nullable=False, default=MDTStatus.ACTIVE)
    creator_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=get_utc_now,
        onupdate=get_utc_now,
        nullable=False,
        index=True,
    )

    # Relationships
    creator = relationship("User", back_populates="created_mdts")
    members = relationship("User", secondary=mdt_members, order_by="User.first_name")
    patient_profile = relationship(
        "PatientProfile",
        back_populates="mdt",
        uselist=False,
        cascade="all, delete-orphan",
    )
    required_specialties = relationship(
        "MDTSpecialty",
        back_populates="mdt",
        cascade="all, delete-orphan",
        order_by="MDTSpecialty.specialty_id",
    )
    invitations = relationship(
        "Invitation",
        back_populates="mdt",
        cascade="all, delete-orphan",
        order_by="Invitation.created_at",
    )
    messages = relationship(
        "Message",
        back_populates="mdt",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )

    def has_member(self, user_id) -> bool:
        """Only valid when ``members`` is loaded"""
        return any(member.id == user_id for member in self.members)


class MDTSpecialty(Base):
    """One required-expertise slot on an MDT; filled flips to True exactly once"""

    __tablename__ = "mdt_specialties"

    mdt_id = Column(
        UUID(as_uuid=True),
        ForeignKey("mdts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    specialty_id = Column(
        Integer, ForeignKey("specialties.id"), primary_key=True
    )
    filled = Column(Boolean, nullable=False, default=False)

    mdt = relationship("MDT", back_populates="required_specialties")
    specialty = relationship("Specialty")
