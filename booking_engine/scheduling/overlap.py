"""
Overlap Detection

Intervals are half-open ``[start, end)``: two intervals conflict iff
``s1 < e2 and s2 < e1``, so back-to-back appointments never conflict.
Only pending and confirmed appointments occupy calendar space.
"""

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from booking_engine.models.appointment import Appointment
from booking_engine.scheduling.lifecycle import NON_TERMINAL_VALUES


def intervals_overlap(
    first_start: datetime,
    first_end: datetime,
    second_start: datetime,
    second_end: datetime,
) -> bool:
    return first_start < second_end and second_start < first_end


def candidate_end(start_time: datetime, duration_minutes: int) -> datetime:
    return start_time + timedelta(minutes=duration_minutes)


def find_conflicts(
    db: Session,
    provider_id: int,
    start_time: datetime,
    duration_minutes: int,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    """
    Return the non-terminal appointments of a provider overlapping a candidate.

    The range filter runs in the database; ``intervals_overlap`` re-applies
    the exact rule to what comes back so both sides agree by construction.
    """
    end_time = candidate_end(start_time, duration_minutes)

    query = db.query(Appointment).filter(
        Appointment.provider_id == provider_id,
        Appointment.status.in_(NON_TERMINAL_VALUES),
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)

    return [
        appointment
        for appointment in query.populate_existing().order_by(Appointment.start_time.asc()).all()
        if intervals_overlap(start_time, end_time, appointment.start_time, appointment.end_time)
    ]


def has_conflict(
    db: Session,
    provider_id: int,
    start_time: datetime,
    duration_minutes: int,
    exclude_appointment_id: int | None = None,
) -> bool:
    return bool(find_conflicts(db, provider_id, start_time, duration_minutes, exclude_appointment_id))
