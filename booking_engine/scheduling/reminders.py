"""
Reminder Scheduling

Reminders are best effort: a reminder that cannot be enqueued is logged and
dropped, and the booking that triggered it still succeeds. A reminder whose
fire time is not in the future is silently skipped.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Protocol

from pydantic import BaseModel
from sqlalchemy.orm import Session

from booking_engine.core import config
from booking_engine.core.clock import Clock, SystemClock
from booking_engine.models.appointment import Appointment
from booking_engine.models.reminder import Reminder
from booking_engine.scheduling.lifecycle import NON_TERMINAL_VALUES
from booking_engine.scheduling.results import AppointmentResult

logger = logging.getLogger(__name__)

REMINDER_TITLE = 'Upcoming Appointment Reminder'


class ReminderMessage(BaseModel):
    user_id: int
    appointment_id: int
    title: str
    message: str
    fire_at: datetime
    expires_at: datetime
    reminder_id: int | None = None


class NotificationSink(Protocol):
    def enqueue(self, reminder: ReminderMessage) -> int | None:
        ...


class DatabaseNotificationSink:
    """Persists reminders through a session of its own, outside any booking transaction."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.session_factory = session_factory

    def enqueue(self, reminder: ReminderMessage) -> int | None:
        db = self.session_factory()
        try:
            row = Reminder(
                user_id=reminder.user_id,
                appointment_id=reminder.appointment_id,
                title=reminder.title,
                message=reminder.message,
                fire_at=reminder.fire_at,
                expires_at=reminder.expires_at,
                is_sent=False,
            )
            db.add(row)
            db.commit()
            return row.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class ReminderScheduler:
    def __init__(self, sink: NotificationSink, clock: Clock | None = None) -> None:
        self.sink = sink
        self.clock = clock or SystemClock()

    def build(self, appointment: AppointmentResult, hours_before: int) -> ReminderMessage | None:
        fire_at = appointment.start - timedelta(hours=hours_before)
        if fire_at <= self.clock.now():
            return None

        return ReminderMessage(
            user_id=appointment.consumer_id,
            appointment_id=appointment.id,
            title=REMINDER_TITLE,
            message=(
                f"You have an appointment on {appointment.start.strftime('%A %d %B %Y')} "
                f"at {appointment.start.strftime('%H:%M')}."
            ),
            fire_at=fire_at,
            expires_at=appointment.start,
        )

    def schedule(
        self,
        appointment: AppointmentResult,
        hours_before: int = config.REMINDER_HOURS_BEFORE,
    ) -> ReminderMessage | None:
        reminder = self.build(appointment, hours_before)
        if reminder is None:
            logger.debug('No reminder for appointment %s: fire time already passed', appointment.id)
            return None

        try:
            reminder.reminder_id = self.sink.enqueue(reminder)
        except Exception:
            logger.exception('Failed to enqueue reminder for appointment %s', appointment.id)
            return None

        logger.info('Reminder for appointment %s scheduled at %s', appointment.id, reminder.fire_at)
        return reminder


def dispatch_due_reminders(db: Session, now: datetime) -> list[Reminder]:
    """
    Mark due reminders as sent and return the ones still worth delivering.

    A reminder is moot once its appointment has started, was moved to another
    start time, or left the pending/confirmed states. Moot reminders are marked
    sent but not returned.
    """
    due = db.query(Reminder).filter(
        Reminder.is_sent.is_(False),
        Reminder.fire_at <= now,
    ).order_by(Reminder.fire_at.asc()).all()

    deliverable: list[Reminder] = []
    for reminder in due:
        reminder.is_sent = True
        appointment = db.query(Appointment).filter(Appointment.id == reminder.appointment_id).first()

        if (
            appointment is None
            or reminder.expires_at <= now
            or appointment.start_time <= now
            or reminder.expires_at != appointment.start_time
            or appointment.status not in NON_TERMINAL_VALUES
        ):
            continue

        appointment.reminder_sent = True
        deliverable.append(reminder)

    db.commit()

    if due:
        logger.info('dispatch_due_reminders: %s due, %s deliverable', len(due), len(deliverable))
    return deliverable
