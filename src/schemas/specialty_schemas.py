# src/schemas/specialty_schemas.py
from .base_schemas import BaseSchema


class SpecialtyPublic(BaseSchema):
    id: int
    name: str
