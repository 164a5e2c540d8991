# src/routes/__init__.py
from .auth import router as auth_router
from .specialties import router as specialties_router
from .users import router as users_router
from .mdts import router as mdts_router
from .messages import router as messages_router
from .invitations import router as invitations_router

__all__ = [
    "auth_router",
    "specialties_router",
    "users_router",
    "mdts_router",
    "messages_router",
    "invitations_router",
]
