# src/routes/invitations.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, List
from uuid import UUID
from db.database import get_db
from models.invitation import InvitationStatus
from models.user import User
from schemas.invitation_schemas import (
    InvitationCreate,
    InvitationDetail,
    InvitationRespond,
    PendingInvitation,
)
from services.auth_service import auth_service
from services.invitation_service import invitation_service
from utils.logger import setup_logger

router = APIRouter(prefix="/invitations", tags=["invitations"])
logger = setup_logger("INVITATION_ROUTES")


@router.get(
    "",
    response_model=List[PendingInvitation],
    summary="List pending invitations",
    description="Invitations awaiting the caller's answer, newest first",
)
async def list_pending_invitations(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    invitations = await invitation_service.list_pending(db, current_user)
    return [PendingInvitation.model_validate(i) for i in invitations]


@router.post(
    "",
    response_model=InvitationDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Invite by email",
)
async def create_invitation(
    invitation_data: InvitationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    invitation = await invitation_service.invite(
        db, current_user, invitation_data.mdt_id, invitation_data.receiver_email
    )
    return InvitationDetail.model_validate(invitation)


@router.get("/{invitation_id}", response_model=InvitationDetail, summary="Get invitation")
async def get_invitation(
    invitation_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    invitation = await invitation_service.get_invitation(db, invitation_id, current_user)
    return InvitationDetail.model_validate(invitation)


@router.patch(
    "/{invitation_id}",
    response_model=InvitationDetail,
    summary="Respond to invitation",
    description="Accept or decline; accepting joins the team and fills the specialty slot",
)
async def respond_to_invitation(
    invitation_id: UUID,
    response_data: InvitationRespond,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    invitation = await invitation_service.respond(
        db, invitation_id, current_user, InvitationStatus(response_data.status)
    )
    return InvitationDetail.model_validate(invitation)


@router.delete(
    "/{invitation_id}",
    response_model=InvitationDetail,
    summary="Cancel invitation",
    description="Sender withdraws a pending invitation",
)
async def cancel_invitation(
    invitation_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    invitation = await invitation_service.cancel(db, invitation_id, current_user)
    logger.info(f"Invitation {invitation_id} withdrawn via API")
    return InvitationDetail.model_validate(invitation)
