# src/services/invitation_service.py
from typing import Iterable, List, Optional, Set
from uuid import UUID
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from models.invitation import Invitation, InvitationStatus
from models.mdt import MDT, MDTSpecialty
from models.patient_profile import PatientProfile
from models.specialty import Specialty
from models.user import User, UserRole
from utils.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
    handle_db_exception,
)
from utils.logger import setup_logger
from utils.security import get_utc_now
from .base_service import BaseService
from .membership_service import membership_service
from .user_service import user_service

logger = setup_logger("INVITATION_SERVICE")

RESPONSE_STATUSES = {InvitationStatus.ACCEPTED, InvitationStatus.DECLINED}


def _pending_options():
    return [
        selectinload(Invitation.specialty),
        selectinload(Invitation.sender).selectinload(User.specialties),
        selectinload(Invitation.mdt).selectinload(MDT.patient_profile),
        selectinload(Invitation.mdt)
        .selectinload(MDT.members)
        .selectinload(User.specialties),
    ]


def _detail_options():
    return [
        selectinload(Invitation.specialty),
        selectinload(Invitation.sender).selectinload(User.specialties),
        selectinload(Invitation.receiver).selectinload(User.specialties),
        selectinload(Invitation.mdt)
        .selectinload(MDT.patient_profile)
        .selectinload(PatientProfile.medications),
        selectinload(Invitation.mdt)
        .selectinload(MDT.members)
        .selectinload(User.specialties),
    ]


class InvitationService(BaseService):
    def __init__(self):
        super().__init__(Invitation)

    async def create_matching_invitations(
        self,
        db: AsyncSession,
        mdt: MDT,
        sender: User,
        specialty_ids: Iterable[int],
        exclude_user_ids: Set[UUID],
    ) -> List[Invitation]:
        """
        Queue one PENDING invitation per EXTERNAL professional holding any of
        the required specialties.

        Runs inside the caller's transaction and does not commit. When a
        receiver matches several required specialties, the invitation is tied
        to the lowest specialty id they share with the MDT.
        """
        wanted = set(specialty_ids)
        if not wanted:
            return []

        result = await db.execute(
            select(User)
            .where(
                User.role == UserRole.EXTERNAL,
                User.specialties.any(Specialty.id.in_(wanted)),
            )
            .options(selectinload(User.specialties))
            .order_by(User.created_at, User.id)
        )

        invitations = []
        for receiver in result.scalars().all():
            if receiver.id in exclude_user_ids:
                continue
            shared = sorted(s.id for s in receiver.specialties if s.id in wanted)
            invitation = Invitation(
                mdt_id=mdt.id,
                sender_id=sender.id,
                receiver_id=receiver.id,
                specialty_id=shared[0],
                status=InvitationStatus.PENDING,
            )
            db.add(invitation)
            invitations.append(invitation)

        await db.flush()
        logger.info(
            f"Queued {len(invitations)} specialty invitations for MDT {mdt.id}"
        )
        return invitations

    async def invite(
        self, db: AsyncSession, sender: User, mdt_id: UUID, receiver_email: str
    ) -> Invitation:
        """Direct invitation by email; carries no specialty slot"""
        if not sender.is_local:
            raise ForbiddenException("Only local professionals can send invitations")

        if not await membership_service.is_member(db, mdt_id, sender.id):
            raise NotFoundException("MDT not found")

        receiver = await user_service.get_by_email(db, receiver_email)
        if receiver is None:
            raise NotFoundException("No user registered with that email")

        if await membership_service.is_member(db, mdt_id, receiver.id):
            raise ConflictException("User is already a member of this MDT")

        result = await db.execute(
            select(Invitation.id).where(
                Invitation.mdt_id == mdt_id,
                Invitation.receiver_id == receiver.id,
                Invitation.status == InvitationStatus.PENDING,
            )
        )
        if result.first() is not None:
            raise ConflictException("A pending invitation already exists for this user")

        invitation = Invitation(
            mdt_id=mdt_id,
            sender_id=sender.id,
            receiver_id=receiver.id,
            specialty_id=None,
            status=InvitationStatus.PENDING,
        )
        try:
            db.add(invitation)
            await db.commit()
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "create invitation", e)

        logger.info(f"User {sender.id} invited {receiver.id} to MDT {mdt_id}")
        return await self.get(db, invitation.id, options=_detail_options())

    async def respond(
        self,
        db: AsyncSession,
        invitation_id: UUID,
        responder: User,
        status: InvitationStatus,
    ) -> Invitation:
        """
        Accept or decline a PENDING invitation.

        Accepting a specialty invitation first claims the slot with a
        conditional update on its MDTSpecialty row, so of two concurrent
        acceptances for the same slot exactly one wins. Rows are always locked
        slot first, then invitations, so competing accepts queue on the slot
        instead of deadlocking. Within the same transaction the remaining
        PENDING invitations for that slot are cancelled and the receiver joins
        the team.
        """
        status = InvitationStatus(status)
        if status not in RESPONSE_STATUSES:
            raise ValidationException("Status must be ACCEPTED or DECLINED")

        invitation = await self.get(db, invitation_id)
        if invitation is None:
            raise NotFoundException("Invitation not found")

        if invitation.receiver_id != responder.id:
            raise ForbiddenException("Only the invited user can respond")

        if invitation.status.is_terminal:
            raise ConflictException(
                f"Invitation has already been {invitation.status.value.lower()}"
            )

        mdt_id = invitation.mdt_id
        specialty_id = invitation.specialty_id
        claims_slot = status == InvitationStatus.ACCEPTED and specialty_id is not None

        try:
            if claims_slot:
                await self._claim_slot(db, mdt_id, specialty_id, invitation_id)

            answered = await db.execute(
                update(Invitation)
                .where(
                    Invitation.id == invitation_id,
                    Invitation.status == InvitationStatus.PENDING,
                )
                .values(status=status, updated_at=get_utc_now())
                .execution_options(synchronize_session=False)
            )
            if answered.rowcount != 1:
                await db.rollback()
                raise ConflictException("Invitation has already been responded to")

            if claims_slot:
                await self._cancel_competitors(db, mdt_id, specialty_id, invitation_id)
            if status == InvitationStatus.ACCEPTED:
                await membership_service.add_member(db, mdt_id, responder.id)
                await membership_service.touch(db, mdt_id)

            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Slot already taken on accept of {invitation_id}: {e}")
            raise ConflictException("This specialty position has already been filled")
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "respond to invitation", e)

        logger.info(f"Invitation {invitation_id} {status.value} by {responder.id}")
        return await self.get(db, invitation_id, options=_detail_options())

    async def _claim_slot(
        self, db: AsyncSession, mdt_id: UUID, specialty_id: int, invitation_id: UUID
    ) -> None:
        filled = await db.execute(
            update(MDTSpecialty)
            .where(
                MDTSpecialty.mdt_id == mdt_id,
                MDTSpecialty.specialty_id == specialty_id,
                MDTSpecialty.filled.is_(False),
            )
            .values(filled=True)
            .execution_options(synchronize_session=False)
        )
        if filled.rowcount != 1:
            await db.rollback()
            logger.warning(
                f"Specialty {specialty_id} on MDT {mdt_id} already filled, "
                f"invitation {invitation_id} stays pending"
            )
            raise ConflictException("This specialty position has already been filled")

    async def _cancel_competitors(
        self, db: AsyncSession, mdt_id: UUID, specialty_id: int, invitation_id: UUID
    ) -> None:
        cancelled = await db.execute(
            update(Invitation)
            .where(
                Invitation.mdt_id == mdt_id,
                Invitation.specialty_id == specialty_id,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.id != invitation_id,
            )
            .values(status=InvitationStatus.CANCELLED, updated_at=get_utc_now())
            .execution_options(synchronize_session=False)
        )
        logger.info(
            f"Filled specialty {specialty_id} on MDT {mdt_id}, "
            f"cancelled {cancelled.rowcount} competing invitations"
        )

    async def cancel(
        self, db: AsyncSession, invitation_id: UUID, requester: User
    ) -> Invitation:
        """Sender withdraws a PENDING invitation"""
        invitation = await self.get(db, invitation_id)
        if invitation is None:
            raise NotFoundException("Invitation not found")

        if invitation.sender_id != requester.id:
            raise ForbiddenException("Only the sender can cancel an invitation")

        if invitation.status.is_terminal:
            raise ConflictException("Only pending invitations can be cancelled")

        try:
            result = await db.execute(
                update(Invitation)
                .where(
                    Invitation.id == invitation_id,
                    Invitation.status == InvitationStatus.PENDING,
                )
                .values(status=InvitationStatus.CANCELLED, updated_at=get_utc_now())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                raise ConflictException("Only pending invitations can be cancelled")
            await db.commit()
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "cancel invitation", e)

        logger.info(f"Invitation {invitation_id} cancelled by {requester.id}")
        return await self.get(db, invitation_id, options=_detail_options())

    async def list_pending(self, db: AsyncSession, user: User) -> List[Invitation]:
        """The caller's PENDING invitations, newest first"""
        result = await db.execute(
            select(Invitation)
            .where(
                Invitation.receiver_id == user.id,
                Invitation.status == InvitationStatus.PENDING,
            )
            .options(*_pending_options())
            .order_by(Invitation.created_at.desc())
        )
        return list(result.scalars().all())

    def can_view_invitation(self, user: User, invitation: Invitation) -> bool:
        """Sender, receiver and members of the MDT may read an invitation"""
        return (
            invitation.sender_id == user.id
            or invitation.receiver_id == user.id
            or invitation.mdt.has_member(user.id)
        )

    async def get_invitation(
        self, db: AsyncSession, invitation_id: UUID, requester: User
    ) -> Invitation:
        invitation: Optional[Invitation] = await self.get(
            db, invitation_id, options=_detail_options()
        )
        if invitation is None or not self.can_view_invitation(requester, invitation):
            raise NotFoundException("Invitation not found")
        return invitation


invitation_service = InvitationService()
