# src/schemas/user_schemas.py
from pydantic import EmailStr, Field, model_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from models.user import UserRole
from .base_schemas import BaseSchema, IDMixin
from .specialty_schemas import SpecialtyPublic


class SignupRequest(BaseSchema):
    """Registration payload; role decides which professional fields are required"""

    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., max_length=128)
    role: UserRole
    specialties: List[int] = []

    # LOCAL only
    hospital: Optional[str] = Field(None, max_length=200)
    referral_code: Optional[str] = Field(None, max_length=64)

    # EXTERNAL only
    professional_registration_number: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def check_role_fields(self) -> "SignupRequest":
        if self.role == UserRole.LOCAL:
            if not self.hospital:
                raise ValueError("Hospital is required for local professionals")
        elif not self.professional_registration_number:
            raise ValueError(
                "Professional registration number is required for external professionals"
            )
        return self


class UserLogin(BaseSchema):
    """User login schema"""

    email: EmailStr
    password: str


class UserSummary(IDMixin):
    """Display identity attached to members, senders and message authors"""

    first_name: str
    last_name: str
    full_name: str
    role: UserRole
    specialties: List[SpecialtyPublic] = []


class LocalPeer(UserSummary):
    email: EmailStr


class UserPublic(UserSummary):
    """The caller's own profile; never carries the password hash"""

    email: EmailStr
    hospital: Optional[str] = None
    professional_registration_number: Optional[str] = None
    referral_code: Optional[str] = None
    referred_by_id: Optional[UUID] = None
    created_at: Optional[datetime] = None


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserPublic


class ReferralValidationResponse(BaseSchema):
    valid: bool = True
    referrer_name: str
