# src/models/patient_profile.py
import uuid
from sqlalchemy import Column, String, Text, Integer, Enum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from db.database import Base


class GenderEnum(str, PyEnum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class PatientProfile(Base):
    """Structured patient data for exactly one MDT"""

    __tablename__ = "patient_profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    mdt_id = Column(
        UUID(as_uuid=True),
        ForeignKey("mdts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    age = Column(Integer, nullable=False)
    gender = Column(Enum(GenderEnum), nullable=False)
    unique_id = Column(String(100), nullable=False)
    medical_history = Column(Text, nullable=False, default="")
    case_summary = Column(Text, nullable=False, default="")

    mdt = relationship("MDT", back_populates="patient_profile")
    medications = relationship(
        "Medication",
        back_populates="patient_profile",
        cascade="all, delete-orphan",
        order_by="Medication.position",
    )


class Medication(Base):
    __tablename__ = "medications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_profile_id = Column(
        UUID(as_uuid=True),
        ForeignKey("patient_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(200), nullable=False)
    dosage = Column(String(200), nullable=False, default="")

    patient_profile = relationship("PatientProfile", back_populates="medications")
