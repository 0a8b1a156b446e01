"""
Slot Generation

Turns a provider's weekly window for one date into bookable slots:

    1. Look up the enabled window for the date's weekday (none -> no slots).
    2. Walk the window in ``granularity_minutes`` steps; a trailing partial
       step is dropped because a slot must end at or before the window end.
    3. Drop steps overlapping a pending/confirmed appointment (using the
       appointment's real duration) and steps not strictly in the future.

Slots are a snapshot. A returned slot can still lose a race with a concurrent
booking; the booking path re-validates on its own.
"""

from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from booking_engine.core import config
from booking_engine.core.errors import ValidationError
from booking_engine.models.appointment import Appointment
from booking_engine.scheduling import directory
from booking_engine.scheduling.lifecycle import NON_TERMINAL_VALUES
from booking_engine.scheduling.overlap import intervals_overlap
from booking_engine.scheduling.results import Slot


def iterate_grid(window_start: datetime, window_end: datetime, granularity_minutes: int) -> list[tuple[datetime, datetime]]:
    step = timedelta(minutes=granularity_minutes)
    grid: list[tuple[datetime, datetime]] = []
    current = window_start

    while current + step <= window_end:
        grid.append((current, current + step))
        current += step

    return grid


def get_booked_intervals(db: Session, provider_id: int, day_start: datetime, day_end: datetime) -> list[tuple[datetime, datetime]]:
    booked = db.query(Appointment.start_time, Appointment.end_time).filter(
        Appointment.provider_id == provider_id,
        Appointment.status.in_(NON_TERMINAL_VALUES),
        Appointment.start_time < day_end,
        Appointment.end_time > day_start,
    ).order_by(Appointment.start_time.asc()).all()

    return [(start_time, end_time) for start_time, end_time in booked]


def generate_slots(
    db: Session,
    provider_id: int,
    target_date: date,
    now: datetime,
    granularity_minutes: int = config.DEFAULT_SLOT_MINUTES,
) -> list[Slot]:
    if granularity_minutes <= 0:
        raise ValidationError('Slot granularity must be a positive number of minutes.', field='granularity_minutes')

    directory.get_bookable_provider(db, provider_id)

    window = directory.get_window_for_date(db, provider_id, target_date)
    if window is None:
        return []

    window_start = datetime.combine(target_date, window.start_time)
    window_end = datetime.combine(target_date, window.end_time)
    booked_intervals = get_booked_intervals(
        db,
        provider_id,
        datetime.combine(target_date, time.min),
        datetime.combine(target_date + timedelta(days=1), time.min),
    )

    slots: list[Slot] = []
    for slot_start, slot_end in iterate_grid(window_start, window_end, granularity_minutes):
        if slot_start <= now:
            continue
        if any(
            intervals_overlap(slot_start, slot_end, booked_start, booked_end)
            for booked_start, booked_end in booked_intervals
        ):
            continue
        slots.append(Slot(start=slot_start, end=slot_end))

    return slots
