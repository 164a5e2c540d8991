# src/routes/auth.py
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any
from core.config import settings
from db.database import get_db
from models.user import User
from schemas.user_schemas import (
    ReferralValidationResponse,
    SignupRequest,
    TokenResponse,
    UserLogin,
    UserPublic,
)
from services.auth_service import auth_service
from utils.rate_limiter import limiter
from utils.logger import setup_logger

logger = setup_logger("AUTH_ROUTES")

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/signup",
    response_model=UserPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Register a professional",
    description="LOCAL users need an EXTERNAL user's referral code; EXTERNAL users receive one",
)
@limiter.limit(settings.SIGNUP_RATE_LIMIT)
async def signup(
    request: Request, signup_data: SignupRequest, db: AsyncSession = Depends(get_db)
) -> Any:
    user = await auth_service.register(db, signup_data)
    return UserPublic.model_validate(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="User login",
    description="Authenticate with email and password and return a bearer token",
)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request, login_data: UserLogin, db: AsyncSession = Depends(get_db)
) -> Any:
    result = await auth_service.login(db, login_data)
    return TokenResponse(
        access_token=result["access_token"],
        token_type=result["token_type"],
        expires_in=result["expires_in"],
        user=UserPublic.model_validate(result["user"]),
    )


@router.get("/me", response_model=UserPublic, summary="Current user")
async def me(current_user: User = Depends(auth_service.get_current_user)) -> Any:
    return UserPublic.model_validate(current_user)


@router.get(
    "/validate-referral",
    response_model=ReferralValidationResponse,
    summary="Check a referral code",
    description="Lets the signup form confirm a code before submitting",
)
async def validate_referral(
    code: str = Query(..., min_length=1), db: AsyncSession = Depends(get_db)
) -> Any:
    referrer = await auth_service.validate_referral_code(db, code)
    return ReferralValidationResponse(valid=True, referrer_name=referrer.full_name)
