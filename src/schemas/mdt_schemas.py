# src/schemas/mdt_schemas.py
from pydantic import Field, HttpUrl
from typing import Optional, List, Literal
from datetime import datetime
from uuid import UUID
from models.mdt import MDTStatus
from models.invitation import InvitationStatus
from models.patient_profile import GenderEnum
from .base_schemas import BaseSchema, IDMixin, TimestampMixin
from .specialty_schemas import SpecialtyPublic
from .user_schemas import UserSummary


class MedicationIn(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field("", max_length=200)


class MedicationPublic(IDMixin):
    name: str
    dosage: str


class PatientProfileBase(BaseSchema):
    age: int = Field(..., ge=0, le=150)
    gender: GenderEnum
    unique_id: str = Field(..., min_length=1, max_length=100)
    medical_history: str = ""
    case_summary: str = ""


class PatientProfileCreate(PatientProfileBase):
    medications: List[MedicationIn] = []


class PatientProfileUpdate(BaseSchema):
    """Scalar patient fields only; the medication list is fixed at creation"""

    age: Optional[int] = Field(None, ge=0, le=150)
    gender: Optional[GenderEnum] = None
    unique_id: Optional[str] = Field(None, min_length=1, max_length=100)
    medical_history: Optional[str] = None
    case_summary: Optional[str] = None


class PatientProfilePublic(PatientProfileBase):
    id: UUID
    medications: List[MedicationPublic] = []


class PatientSummary(BaseSchema):
    age: int
    gender: GenderEnum
    unique_id: str


class MDTCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    patient_profile: PatientProfileCreate
    local_doctor_ids: List[UUID] = []
    required_specialty_ids: List[int] = []


class MDTUpdate(BaseSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    patient_profile: Optional[PatientProfileUpdate] = None


class MDTStatusUpdate(BaseSchema):
    status: MDTStatus


class MDTSpecialtyPublic(BaseSchema):
    specialty: SpecialtyPublic
    filled: bool


class InvitationSummary(IDMixin):
    status: InvitationStatus
    receiver: UserSummary
    specialty: Optional[SpecialtyPublic] = None
    created_at: datetime


class MessagePreview(IDMixin):
    content: str
    created_at: datetime
    author: UserSummary


class MDTPublic(IDMixin, TimestampMixin):
    name: str
    status: MDTStatus
    creator_id: UUID
    members: List[UserSummary] = []
    patient_profile: Optional[PatientProfilePublic] = None
    required_specialties: List[MDTSpecialtyPublic] = []


class MDTDetail(MDTPublic):
    invitations: List[InvitationSummary] = []


class MDTListItem(MDTPublic):
    last_message: Optional[MessagePreview] = None


class ExtractionRequest(BaseSchema):
    """Stored-file reference handed to the extraction service"""

    source: Literal["audio", "image"]
    file_url: HttpUrl


class PatientProfileDraft(BaseSchema):
    """Extracted fields used to pre-fill a new case; every field is optional"""

    age: Optional[int] = None
    gender: Optional[GenderEnum] = None
    medical_history: Optional[str] = None
    case_summary: Optional[str] = None
    medications: List[MedicationIn] = []
