# src/routes/users.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, List
from db.database import get_db
from models.user import User
from schemas.user_schemas import LocalPeer
from services.auth_service import auth_service
from services.user_service import user_service
from utils.exceptions import ForbiddenException

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/local",
    response_model=List[LocalPeer],
    summary="List local peers",
    description="Other LOCAL professionals who can be added to a new MDT",
)
async def list_local_peers(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user),
) -> Any:
    if not current_user.is_local:
        raise ForbiddenException("Only local professionals can build a team")
    peers = await user_service.list_local_peers(db, excluding=current_user)
    return [LocalPeer.model_validate(peer) for peer in peers]
