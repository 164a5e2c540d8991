# src/routes/specialties.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, List
from db.database import get_db
from schemas.specialty_schemas import SpecialtyPublic
from services.specialty_service import specialty_service

router = APIRouter(prefix="/specialties", tags=["specialties"])


@router.get(
    "",
    response_model=List[SpecialtyPublic],
    summary="List specialties",
    description="The medical specialty catalog, ordered by name. Public for the signup form.",
)
async def list_specialties(db: AsyncSession = Depends(get_db)) -> Any:
    specialties = await specialty_service.list_specialties(db)
    return [SpecialtyPublic.model_validate(s) for s in specialties]
