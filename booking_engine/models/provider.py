"""Provider and weekly availability model definitions."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from booking_engine.database import Base


class Provider(Base):
    """Represents a professional whose calendar is scheduled."""
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
    is_verified = Column(Boolean, default=False)
    consultation_fee = Column(Numeric(10, 2, asdecimal=False))

    availability_windows = relationship(
        "AvailabilityWindow",
        back_populates="provider",
        cascade="all, delete-orphan",
        order_by="AvailabilityWindow.day_of_week",
    )

    @property
    def is_bookable(self) -> bool:
        return bool(self.is_active and self.is_verified)


class AvailabilityWindow(Base):
    """One working window of a provider for a weekday (0 = Monday)."""
    __tablename__ = "availability_windows"
    __table_args__ = (
        UniqueConstraint("provider_id", "day_of_week", name="uq_availability_provider_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_availability_window_order"),
    )

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_enabled = Column(Boolean, default=True)

    provider = relationship("Provider", back_populates="availability_windows")
