# src/models/user.py
import uuid
from sqlalchemy import Column, String, DateTime, Enum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from db.database import Base
from utils.security import get_utc_now
from .specialty import user_specialties


class UserRole(str, PyEnum):
    LOCAL = "LOCAL"
    EXTERNAL = "EXTERNAL"


class User(Base):
    """
    A healthcare professional. LOCAL and EXTERNAL users share one table;
    role-specific fields are nullable and role-gated operations check ``role``.
    """

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Personal information
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)

    # Professional information
    role = Column(Enum(UserRole), nullable=False, index=True)
    hospital = Column(String(200), nullable=True)  # LOCAL only
    professional_registration_number = Column(String(100), nullable=True)  # EXTERNAL

    # Referral link: EXTERNAL users own a code, LOCAL users point at the owner
    referral_code = Column(String(8), nullable=True, unique=True, index=True)
    referred_by_id = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=get_utc_now)

    # Relationships
    specialties = relationship(
        "Specialty",
        secondary=user_specialties,
        back_populates="users",
        order_by="Specialty.id",
    )
    referred_by = relationship(
        "User", remote_side=[id], back_populates="referred_users"
    )
    referred_users = relationship("User", back_populates="referred_by")
    created_mdts = relationship("MDT", back_populates="creator")

    @property
    def full_name(self) -> str:
        """Get user's full name"""
        return f"{self.first_name} {self.last_name}"

    @property
    def is_local(self) -> bool:
        return self.role == UserRole.LOCAL

    @property
    def is_external(self) -> bool:
        return self.role == UserRole.EXTERNAL

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
