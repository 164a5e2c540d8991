# src/models/specialty.py
from sqlalchemy import Column, ForeignKey, Integer, String, Table
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from db.database import Base


user_specialties = Table(
    "user_specialties",
    Base.metadata,
    Column(
        "user_id",
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "specialty_id",
        Integer,
        ForeignKey("specialties.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Specialty(Base):
    """Reference list of medical specialties, seeded once"""

    __tablename__ = "specialties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)

    users = relationship(
        "User", secondary=user_specialties, back_populates="specialties"
    )

    def __repr__(self) -> str:
        return f"<Specialty {self.id} {self.name}>"
