"""Appointment lifecycle: statuses, legal transitions and time-based eligibility."""

from datetime import datetime, timedelta
from enum import Enum

from booking_engine.core.errors import IneligibleTransitionError


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"


# Statuses that still occupy calendar space.
NON_TERMINAL_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW}
)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

NON_TERMINAL_VALUES = tuple(status.value for status in NON_TERMINAL_STATUSES)


def is_terminal(status: str | AppointmentStatus) -> bool:
    return AppointmentStatus(status) in TERMINAL_STATUSES


def ensure_transition(current: str | AppointmentStatus, target: AppointmentStatus) -> None:
    current = AppointmentStatus(current)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise IneligibleTransitionError(
            f'Cannot move a {current.value} appointment to {target.value}.',
            rule='terminal_status' if current in TERMINAL_STATUSES else 'illegal_transition',
        )


def ensure_mutable(current: str | AppointmentStatus) -> None:
    current = AppointmentStatus(current)
    if current in TERMINAL_STATUSES:
        raise IneligibleTransitionError(
            f'Cannot update {current.value} appointment.',
            rule='terminal_status',
        )


def cancellation_deadline(start_time: datetime, cutoff_hours: int) -> datetime:
    return start_time - timedelta(hours=cutoff_hours)


def ensure_cancellable(
    current: str | AppointmentStatus,
    start_time: datetime,
    now: datetime,
    cutoff_hours: int,
) -> None:
    """Raise unless the appointment may still be cancelled at ``now``.

    Terminal appointments are rejected first; otherwise ``now`` must be
    strictly earlier than ``start_time - cutoff_hours``.
    """
    ensure_transition(current, AppointmentStatus.CANCELLED)

    if now >= cancellation_deadline(start_time, cutoff_hours):
        raise IneligibleTransitionError(
            f'Appointment cannot be cancelled less than {cutoff_hours} hours before it starts '
            '(too close to appointment time).',
            rule='cancellation_cutoff',
        )


def ensure_no_show_eligible(current: str | AppointmentStatus, start_time: datetime, now: datetime) -> None:
    ensure_transition(current, AppointmentStatus.NO_SHOW)

    if now < start_time:
        raise IneligibleTransitionError(
            'An appointment can only be marked as a no-show after its start time.',
            rule='not_started',
        )
