"""Queries over the appointment ledger."""

from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from booking_engine.core.errors import NotFoundError, ValidationError
from booking_engine.models.appointment import Appointment
from booking_engine.scheduling.lifecycle import NON_TERMINAL_VALUES, AppointmentStatus


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise NotFoundError('Appointment')
    return appointment


def list_for_owner(
    db: Session,
    owner_id: int,
    now: datetime,
    status: str | None = None,
    upcoming: bool = False,
    past: bool = False,
) -> list[Appointment]:
    if upcoming and past:
        raise ValidationError('Choose either upcoming or past appointments, not both.', field='upcoming')

    query = db.query(Appointment).filter(Appointment.consumer_id == owner_id)

    if status:
        query = query.filter(Appointment.status == _normalize_status(status))

    if upcoming:
        query = query.filter(
            Appointment.start_time >= now,
            Appointment.status.in_(NON_TERMINAL_VALUES),
        )

    if past:
        query = query.filter(Appointment.start_time < now)

    return query.order_by(Appointment.start_time.desc()).all()


def list_for_provider(
    db: Session,
    provider_id: int,
    on_date: date | None = None,
    statuses: list[str] | None = None,
) -> list[Appointment]:
    query = db.query(Appointment).filter(Appointment.provider_id == provider_id)

    if on_date is not None:
        day_start = datetime.combine(on_date, time.min)
        query = query.filter(
            Appointment.start_time >= day_start,
            Appointment.start_time < day_start + timedelta(days=1),
        )

    if statuses:
        query = query.filter(Appointment.status.in_([_normalize_status(status) for status in statuses]))

    return query.order_by(Appointment.start_time.asc()).all()


def _normalize_status(status: str) -> str:
    try:
        return AppointmentStatus(status.strip().lower()).value
    except ValueError as exc:
        raise ValidationError(f'Unknown appointment status: {status}.', field='status') from exc
