"""User model definitions."""

from sqlalchemy import Column, Integer, String
from booking_engine.database import Base

ROLE_CONSUMER = "consumer"
ROLE_PROVIDER = "provider"
ROLE_ADMIN = "admin"


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    full_name = Column(String)
    role = Column(String, default=ROLE_CONSUMER)  # consumer/provider/admin

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
