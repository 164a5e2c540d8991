# src/models/__init__.py
"""
Models initialization file to handle circular dependencies
"""

from .specialty import Specialty, user_specialties
from .user import User, UserRole
from .patient_profile import PatientProfile, Medication, GenderEnum
from .mdt import MDT, MDTSpecialty, MDTStatus, mdt_members
from .invitation import Invitation, InvitationStatus
from .message import Message, MAX_MESSAGE_LENGTH

from sqlalchemy.orm import configure_mappers

# Configure all mappers
configure_mappers()

__all__ = [
    "Specialty",
    "user_specialties",
    "User",
    "UserRole",
    "PatientProfile",
    "Medication",
    "GenderEnum",
    "MDT",
    "MDTSpecialty",
    "MDTStatus",
    "mdt_members",
    "Invitation",
    "InvitationStatus",
    "Message",
    "MAX_MESSAGE_LENGTH",
]
