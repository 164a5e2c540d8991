# src/services/auth_service.py
from typing import Optional, Dict, Any, Tuple, List
from uuid import UUID
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from core.config import settings
from db.database import get_db
from models.user import User, UserRole
from schemas.user_schemas import SignupRequest, UserLogin
from utils.exceptions import (
    ConflictException,
    InvalidReferralException,
    UnauthorizedException,
    ValidationException,
    handle_db_exception,
)
from utils.logger import setup_logger
from utils.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from .specialty_service import specialty_service
from .user_service import user_service

logger = setup_logger("AUTH_SERVICE")

security = HTTPBearer(auto_error=False)


class PasswordPolicyService:
    """Password complexity rules applied at registration"""

    def __init__(self):
        self.min_length = 8
        self.require_uppercase = True
        self.require_lowercase = True
        self.require_numbers = True

    def validate_password_strength(self, password: str) -> Tuple[bool, List[str]]:
        errors = []

        if len(password) < self.min_length:
            errors.append(
                f"Password must be at least {self.min_length} characters long"
            )

        if self.require_uppercase and not any(c.isupper() for c in password):
            errors.append("Password must contain at least one uppercase letter")

        if self.require_lowercase and not any(c.islower() for c in password):
            errors.append("Password must contain at least one lowercase letter")

        if self.require_numbers and not any(c.isdigit() for c in password):
            errors.append("Password must contain at least one number")

        return len(errors) == 0, errors


password_policy_service = PasswordPolicyService()


class AuthService:
    async def register(self, db: AsyncSession, signup: SignupRequest) -> User:
        """
        Create a LOCAL or EXTERNAL professional.

        LOCAL users must present the referral code of an EXTERNAL user and are
        linked to them; EXTERNAL users are issued a fresh referral code.
        All checks run before anything is written.
        """
        is_valid, errors = password_policy_service.validate_password_strength(
            signup.password
        )
        if not is_valid:
            raise ValidationException(
                "Password does not meet security requirements: " + "; ".join(errors)
            )

        specialties = await specialty_service.get_by_ids(db, signup.specialties)

        email = signup.email.lower()
        if await user_service.get_by_email(db, email):
            logger.warning(f"Signup rejected, email already registered: {email}")
            raise ConflictException("Email already registered")

        role = UserRole(signup.role)
        user = User(
            first_name=signup.first_name,
            last_name=signup.last_name,
            email=email,
            hashed_password=hash_password(signup.password),
            role=role,
            specialties=specialties,
        )

        if role == UserRole.LOCAL:
            referrer = await self.validate_referral_code(db, signup.referral_code)
            user.hospital = signup.hospital
            user.referred_by_id = referrer.id
        else:
            user.professional_registration_number = (
                signup.professional_registration_number
            )
            user.referral_code = await user_service.generate_unique_referral_code(db)

        try:
            db.add(user)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Integrity error registering {email}: {e}")
            # a concurrent signup may have taken the email or the referral code
            if await user_service.get_by_email(db, email):
                raise ConflictException("Email already registered")
            raise ConflictException(
                "Registration conflicted with existing data, please retry"
            )
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "register user", e)

        logger.info(f"Registered {role.value} user: {email}")
        return await user_service.get_by_id(db, user.id)

    async def validate_referral_code(self, db: AsyncSession, code: Optional[str]) -> User:
        """Return the EXTERNAL owner of ``code``; unknown and LOCAL codes fail alike"""
        if not code or not code.strip():
            raise InvalidReferralException("Referral code is required")

        referrer = await user_service.get_by_referral_code(db, code.strip().upper())
        if referrer is None or not referrer.is_external:
            logger.warning(f"Invalid referral code presented: {code}")
            raise InvalidReferralException()
        return referrer

    async def authenticate_user(
        self, db: AsyncSession, email: str, password: str
    ) -> User:
        user = await user_service.get_by_email(db, email)

        if user is None or not verify_password(password, user.hashed_password):
            logger.warning(f"Failed login for {email}")
            raise UnauthorizedException("Invalid email or password")
        return user

    async def login(self, db: AsyncSession, login_data: UserLogin) -> Dict[str, Any]:
        user = await self.authenticate_user(db, login_data.email, login_data.password)
        access_token = create_access_token({"sub": user.id, "role": user.role.value})

        logger.info(f"User logged in: {user.email}")
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "user": user,
        }

    async def get_current_user(
        self,
        db: AsyncSession = Depends(get_db),
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ) -> User:
        """Resolve the request-scoped identity from the bearer token"""
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise UnauthorizedException("Authorization header is missing")

        payload = decode_access_token(credentials.credentials)
        if payload is None:
            raise UnauthorizedException("Could not validate credentials")

        try:
            user_id = UUID(str(payload.get("sub")))
        except ValueError:
            raise UnauthorizedException("Invalid token payload")

        user = await user_service.get_by_id(db, user_id)
        if user is None:
            logger.warning(f"Token subject no longer exists: {user_id}")
            raise UnauthorizedException("Could not validate credentials")

        return user


auth_service = AuthService()
