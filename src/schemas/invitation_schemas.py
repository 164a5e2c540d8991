# src/schemas/invitation_schemas.py
from pydantic import EmailStr
from typing import Optional, List, Literal
from datetime import datetime
from uuid import UUID
from models.invitation import InvitationStatus
from models.mdt import MDTStatus
from .base_schemas import BaseSchema, IDMixin
from .mdt_schemas import PatientProfilePublic, PatientSummary
from .specialty_schemas import SpecialtyPublic
from .user_schemas import UserSummary


class InvitationCreate(BaseSchema):
    mdt_id: UUID
    receiver_email: EmailStr


class InvitationRespond(BaseSchema):
    status: Literal["ACCEPTED", "DECLINED"]


class InvitationPublic(IDMixin):
    mdt_id: UUID
    sender_id: UUID
    receiver_id: UUID
    specialty: Optional[SpecialtyPublic] = None
    status: InvitationStatus
    created_at: datetime


class InvitationMDTSummary(IDMixin):
    """MDT as seen from the pending-invitations list"""

    name: str
    patient_profile: Optional[PatientSummary] = None
    members: List[UserSummary] = []


class InvitationMDTDetail(InvitationMDTSummary):
    """MDT with the full case, for the accept/decline decision"""

    status: MDTStatus
    created_at: datetime
    updated_at: datetime
    patient_profile: Optional[PatientProfilePublic] = None


class PendingInvitation(InvitationPublic):
    mdt: InvitationMDTSummary
    sender: UserSummary


class InvitationDetail(InvitationPublic):
    mdt: InvitationMDTDetail
    sender: UserSummary
    receiver: UserSummary
