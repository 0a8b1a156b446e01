"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from booking_engine.database import Base


class Appointment(Base):
    """Represents a booked appointment. Rows are never deleted."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    consumer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("pets.id"), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=30)
    status = Column(String, nullable=False, default="pending", index=True)
    reason = Column(String, nullable=False)
    symptoms = Column(String)
    notes = Column(String)
    vet_notes = Column(String)
    diagnosis = Column(String)
    prescription = Column(String)
    fee = Column(Numeric(10, 2, asdecimal=False))
    is_paid = Column(Boolean, default=False)
    cancelled_by = Column(String)
    cancellation_reason = Column(String)
    cancelled_at = Column(DateTime)
    reminder_sent = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
