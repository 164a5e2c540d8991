# src/routes/mdts.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, List
from uuid import UUID
from db.database import get_db
from models.user import User
from schemas.base_schemas import MessageResponse
from schemas.mdt_schemas import (
    ExtractionRequest,
    MDTCreate,
    MDTDetail,
    MDTListItem,
    MDTStatusUpdate,
    MDTUpdate,
    MessagePreview,
    PatientProfileDraft,
)
from services.auth_service import auth_service
from services.extraction_service import extraction_service
from services.mdt_service import mdt_service
from utils.logger import setup_logger

router = APIRouter(prefix="/mdts", tags=["mdts"])
logger = setup_logger("MDT_ROUTES")


@router.get(
    "",
    response_model=List[MDTListItem],
    summary="List my MDTs",
    description="Active MDTs the caller belongs to, most recently active first",
)
async def list_mdts(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    rows = await mdt_service.list_for_user(db, current_user)
    items = []
    for mdt, last_message in rows:
        item = MDTListItem.model_validate(mdt)
        if last_message is not None:
            item.last_message = MessagePreview.model_validate(last_message)
        items.append(item)
    return items


@router.post(
    "",
    response_model=MDTDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Create MDT",
    description="Create a case team and invite matching external specialists",
)
async def create_mdt(
    mdt_data: MDTCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    mdt = await mdt_service.create_mdt(db, current_user, mdt_data)
    return MDTDetail.model_validate(mdt)


@router.post(
    "/extract",
    response_model=PatientProfileDraft,
    summary="Extract case data",
    description="Send a stored audio recording or image to the extraction service",
)
async def extract_case(
    extraction: ExtractionRequest,
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    logger.info(f"Case extraction ({extraction.source}) requested by {current_user.id}")
    return await extraction_service.extract(
        current_user, extraction.source, str(extraction.file_url)
    )


@router.get("/{mdt_id}", response_model=MDTDetail, summary="Get MDT")
async def get_mdt(
    mdt_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    mdt = await mdt_service.get_mdt(db, mdt_id, current_user)
    return MDTDetail.model_validate(mdt)


@router.put(
    "/{mdt_id}",
    response_model=MDTDetail,
    summary="Update MDT",
    description="Edit the name and patient details; creator only",
)
async def update_mdt(
    mdt_id: UUID,
    mdt_data: MDTUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    mdt = await mdt_service.update_mdt(db, mdt_id, current_user, mdt_data)
    return MDTDetail.model_validate(mdt)


@router.patch("/{mdt_id}/status", response_model=MDTDetail, summary="Set MDT status")
async def set_mdt_status(
    mdt_id: UUID,
    status_data: MDTStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    mdt = await mdt_service.set_status(db, mdt_id, current_user, status_data.status)
    return MDTDetail.model_validate(mdt)


@router.delete("/{mdt_id}", response_model=MessageResponse, summary="Delete MDT")
async def delete_mdt(
    mdt_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    await mdt_service.delete_mdt(db, mdt_id, current_user)
    return MessageResponse(message="MDT deleted successfully")
