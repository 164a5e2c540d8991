# src/services/mdt_service.py
from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from models.invitation import Invitation
from models.mdt import MDT, MDTSpecialty, MDTStatus
from models.message import Message
from models.patient_profile import GenderEnum, Medication, PatientProfile
from models.user import User
from schemas.mdt_schemas import MDTCreate, MDTUpdate
from utils.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
    handle_db_exception,
)
from utils.logger import setup_logger
from utils.security import get_utc_now
from .base_service import BaseService
from .invitation_service import invitation_service
from .membership_service import membership_service
from .message_service import message_service
from .specialty_service import specialty_service
from .user_service import user_service

logger = setup_logger("MDT_SERVICE")


def _summary_options():
    return [
        selectinload(MDT.members).selectinload(User.specialties),
        selectinload(MDT.patient_profile).selectinload(PatientProfile.medications),
        selectinload(MDT.required_specialties).selectinload(MDTSpecialty.specialty),
    ]


def _detail_options():
    return _summary_options() + [
        selectinload(MDT.invitations)
        .selectinload(Invitation.receiver)
        .selectinload(User.specialties),
        selectinload(MDT.invitations).selectinload(Invitation.specialty),
    ]


class MDTService(BaseService):
    def __init__(self):
        super().__init__(MDT)

    async def create_mdt(
        self, db: AsyncSession, creator: User, mdt_in: MDTCreate
    ) -> MDT:
        """
        Create an MDT with its patient profile, team and specialty slots, then
        queue matching invitations to EXTERNAL professionals.

        Every reference is validated before anything is written, and the whole
        aggregate commits in one transaction.
        """
        if not creator.is_local:
            raise ForbiddenException("Only local professionals can create an MDT")

        specialty_ids = sorted(set(mdt_in.required_specialty_ids))
        await specialty_service.get_by_ids(db, specialty_ids)

        peer_ids = [
            user_id
            for user_id in dict.fromkeys(mdt_in.local_doctor_ids)
            if user_id != creator.id
        ]
        peers = await user_service.get_many_by_ids(db, peer_ids)
        missing = set(peer_ids) - {peer.id for peer in peers}
        if missing:
            raise ValidationException(
                f"Unknown team members: {', '.join(str(i) for i in sorted(missing, key=str))}"
            )
        if any(not peer.is_local for peer in peers):
            raise ValidationException("Only local professionals can be added to a team")

        profile_in = mdt_in.patient_profile
        creator_id = creator.id

        try:
            mdt = MDT(name=mdt_in.name, status=MDTStatus.ACTIVE, creator_id=creator_id)
            mdt.members = [creator, *peers]
            mdt.patient_profile = PatientProfile(
                age=profile_in.age,
                gender=GenderEnum(profile_in.gender),
                unique_id=profile_in.unique_id,
                medical_history=profile_in.medical_history,
                case_summary=profile_in.case_summary,
                medications=[
                    Medication(position=position, name=med.name, dosage=med.dosage)
                    for position, med in enumerate(profile_in.medications)
                ],
            )
            mdt.required_specialties = [
                MDTSpecialty(specialty_id=specialty_id, filled=False)
                for specialty_id in specialty_ids
            ]
            db.add(mdt)
            await db.flush()

            await invitation_service.create_matching_invitations(
                db,
                mdt,
                creator,
                specialty_ids,
                exclude_user_ids={creator_id, *(peer.id for peer in peers)},
            )
            await db.commit()
        except Exception as e:
            await handle_db_exception(db, logger, "create MDT", e)

        logger.info(f"MDT {mdt.id} created by {creator_id}")
        return await self.get(db, mdt.id, options=_detail_options())

    async def get_mdt(self, db: AsyncSession, mdt_id: UUID, requester: User) -> MDT:
        """Full MDT for a member; non-members get the same answer as a missing id"""
        result = await db.execute(
            select(MDT)
            .where(MDT.id == mdt_id, MDT.members.any(User.id == requester.id))
            .options(*_detail_options())
            .execution_options(populate_existing=True)
        )
        mdt = result.scalar_one_or_none()
        if mdt is None:
            raise NotFoundException("MDT not found")
        return mdt

    async def _get_for_creator(
        self, db: AsyncSession, mdt_id: UUID, requester: User, action: str
    ) -> MDT:
        mdt = await self.get(db, mdt_id, options=[selectinload(MDT.patient_profile)])
        if mdt is None:
            raise NotFoundException("MDT not found")
        if mdt.creator_id != requester.id:
            if not await membership_service.is_member(db, mdt_id, requester.id):
                raise NotFoundException("MDT not found")
            raise ForbiddenException(f"Only the MDT creator can {action} it")
        return mdt

    async def update_mdt(
        self, db: AsyncSession, mdt_id: UUID, requester: User, mdt_in: MDTUpdate
    ) -> MDT:
        """Patch the name and scalar patient fields; creator only"""
        mdt = await self._get_for_creator(db, mdt_id, requester, "edit")

        try:
            if mdt_in.name is not None:
                mdt.name = mdt_in.name

            if mdt_in.patient_profile is not None:
                changes = mdt_in.patient_profile.model_dump(exclude_unset=True)
                if changes.get("gender") is not None:
                    changes["gender"] = GenderEnum(changes["gender"])
                for field, value in changes.items():
                    if value is not None:
                        setattr(mdt.patient_profile, field, value)

            mdt.updated_at = get_utc_now()
            await db.commit()
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "update MDT", e)

        logger.info(f"MDT {mdt_id} updated by {requester.id}")
        return await self.get(db, mdt_id, options=_detail_options())

    async def set_status(
        self, db: AsyncSession, mdt_id: UUID, requester: User, status: MDTStatus
    ) -> MDT:
        """Move the case between ACTIVE, COMPLETED and ARCHIVED; creator only"""
        mdt = await self._get_for_creator(db, mdt_id, requester, "change the status of")

        try:
            mdt.status = MDTStatus(status)
            mdt.updated_at = get_utc_now()
            await db.commit()
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "set MDT status", e)

        logger.info(f"MDT {mdt_id} status set to {mdt.status.value}")
        return await self.get(db, mdt_id, options=_detail_options())

    async def delete_mdt(self, db: AsyncSession, mdt_id: UUID, requester: User) -> None:
        """Remove the MDT and everything it owns; creator only"""
        mdt = await self._get_for_creator(db, mdt_id, requester, "delete")

        try:
            await db.delete(mdt)
            await db.commit()
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "delete MDT", e)

        logger.info(f"MDT {mdt_id} deleted by {requester.id}")

    async def list_for_user(
        self, db: AsyncSession, user: User
    ) -> List[Tuple[MDT, Optional[Message]]]:
        """ACTIVE MDTs the user belongs to, most recently active first"""
        result = await db.execute(
            select(MDT)
            .where(MDT.status == MDTStatus.ACTIVE, MDT.members.any(User.id == user.id))
            .options(*_summary_options())
            .order_by(MDT.updated_at.desc(), MDT.id)
            .execution_options(populate_existing=True)
        )
        mdts = list(result.scalars().all())

        latest = await message_service.latest_for_mdts(db, [mdt.id for mdt in mdts])
        return [(mdt, latest.get(mdt.id)) for mdt in mdts]


mdt_service = MDTService()
