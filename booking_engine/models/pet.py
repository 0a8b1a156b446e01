"""Pet model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from booking_engine.database import Base


class Pet(Base):
    """Represents the subject an appointment is about."""
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    species = Column(String)
    is_active = Column(Boolean, default=True)
