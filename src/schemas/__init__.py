# src/schemas/__init__.py
from .base_schemas import *
from .specialty_schemas import *
from .user_schemas import *
from .mdt_schemas import *
from .invitation_schemas import *
from .message_schemas import *
