"""
Booking Transaction

Orchestrates every write to the appointment ledger. Each write runs while the
provider's lock is held and inside one database transaction:

    lock provider -> lock provider row -> re-read -> validate -> write -> commit

so two overlapping requests for the same provider can never both succeed.
Reminders are emitted after the lock is released and never fail a booking.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from booking_engine.core import config
from booking_engine.core.clock import Clock, SystemClock, to_local_naive
from booking_engine.core.errors import (
    AuthorizationError,
    ConflictError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from booking_engine.models.appointment import Appointment
from booking_engine.models.user import User
from booking_engine.scheduling import directory, ledger, lifecycle
from booking_engine.scheduling.lifecycle import AppointmentStatus
from booking_engine.scheduling.locks import ProviderLockRegistry, provider_locks
from booking_engine.scheduling.overlap import candidate_end, find_conflicts
from booking_engine.scheduling.reminders import DatabaseNotificationSink, ReminderScheduler
from booking_engine.scheduling.results import AppointmentDetail, AppointmentResult, Slot
from booking_engine.scheduling.slots import generate_slots

logger = logging.getLogger(__name__)

PARTY_CONSUMER = 'consumer'
PARTY_PROVIDER = 'provider'
PARTY_ADMIN = 'admin'


class BookingService:
    def __init__(
        self,
        db: Session,
        clock: Clock | None = None,
        reminders: ReminderScheduler | None = None,
        locks: ProviderLockRegistry | None = None,
        cancellation_cutoff_hours: int = config.CANCELLATION_CUTOFF_HOURS,
        reminder_hours_before: int = config.REMINDER_HOURS_BEFORE,
    ) -> None:
        self.db = db
        self.clock = clock or SystemClock()
        self.locks = locks or provider_locks
        self.reminders = reminders or ReminderScheduler(
            DatabaseNotificationSink(sessionmaker(autocommit=False, autoflush=False, bind=db.get_bind())),
            self.clock,
        )
        self.cancellation_cutoff_hours = cancellation_cutoff_hours
        self.reminder_hours_before = reminder_hours_before

    # ===== TRANSACTION HELPERS =====

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Ledger transaction failed')
            raise InfrastructureError() from exc
        except Exception:
            self.db.rollback()
            raise

    @contextmanager
    def _reading(self) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise InfrastructureError() from exc

    @contextmanager
    def _locked_transaction(self, provider_id: int) -> Iterator[None]:
        with self.locks.hold(provider_id):
            with self._transaction():
                yield

    # ===== CALLER-FACING OPERATIONS =====

    def book_appointment(
        self,
        consumer: User,
        provider_id: int,
        subject_id: int,
        start_time: datetime,
        duration_minutes: int | None = None,
        reason: str | None = None,
        symptoms: str | None = None,
        notes: str | None = None,
    ) -> AppointmentResult:
        duration_minutes = self._validate_duration(
            config.DEFAULT_DURATION_MINUTES if duration_minutes is None else duration_minutes
        )
        reason = self._validate_reason(reason)
        symptoms = self._validate_text(symptoms, 'symptoms', config.MAX_NOTES_LENGTH)
        notes = self._validate_text(notes, 'notes', config.MAX_NOTES_LENGTH)
        start_time = self._validate_future_start(start_time)

        with self._locked_transaction(provider_id):
            provider = directory.get_bookable_provider(self.db, provider_id, for_update=True)
            directory.get_owned_subject(self.db, subject_id, consumer.id)

            self._ensure_free(provider_id, start_time, duration_minutes)

            appointment = Appointment(
                consumer_id=consumer.id,
                provider_id=provider_id,
                subject_id=subject_id,
                start_time=start_time,
                end_time=candidate_end(start_time, duration_minutes),
                duration_minutes=duration_minutes,
                status=AppointmentStatus.PENDING.value,
                reason=reason,
                symptoms=symptoms,
                notes=notes,
                fee=provider.consultation_fee,
                is_paid=False,
                reminder_sent=False,
            )
            self.db.add(appointment)
            self.db.flush()

        with self._reading():
            result = AppointmentResult.from_appointment(appointment)

        logger.info(
            'Booked appointment %s for provider %s at %s (%s min)',
            result.id, provider_id, start_time, duration_minutes,
        )
        self.reminders.schedule(result, self.reminder_hours_before)
        return result

    def update_appointment(
        self,
        appointment_id: int,
        requester: User,
        start_time: datetime | None = None,
        duration_minutes: int | None = None,
        reason: str | None = None,
        symptoms: str | None = None,
        notes: str | None = None,
    ) -> AppointmentResult:
        if duration_minutes is not None:
            duration_minutes = self._validate_duration(duration_minutes)
        if reason is not None:
            reason = self._validate_reason(reason)
        symptoms = self._validate_text(symptoms, 'symptoms', config.MAX_NOTES_LENGTH)
        notes = self._validate_text(notes, 'notes', config.MAX_NOTES_LENGTH)
        if start_time is not None:
            start_time = self._normalize_start(start_time)

        appointment = self._load(appointment_id)
        if appointment.consumer_id != requester.id and not requester.is_admin:
            raise AuthorizationError('You do not have permission to update this appointment.')

        with self._locked_transaction(appointment.provider_id):
            self.db.refresh(appointment)
            lifecycle.ensure_mutable(appointment.status)

            new_start = start_time or appointment.start_time
            new_duration = duration_minutes or appointment.duration_minutes
            moved = new_start != appointment.start_time

            if moved:
                self._ensure_future(new_start)

            if moved or new_duration != appointment.duration_minutes:
                directory.get_bookable_provider(self.db, appointment.provider_id, for_update=True)
                self._ensure_free(appointment.provider_id, new_start, new_duration, exclude_appointment_id=appointment.id)
                appointment.start_time = new_start
                appointment.duration_minutes = new_duration
                appointment.end_time = candidate_end(new_start, new_duration)

            if moved:
                appointment.reminder_sent = False

            if reason is not None:
                appointment.reason = reason
            # An explicit empty string clears the field.
            if symptoms is not None:
                appointment.symptoms = symptoms or None
            if notes is not None:
                appointment.notes = notes or None

        logger.info('Updated appointment %s', appointment_id)
        result = self._result(appointment)
        if moved:
            self.reminders.schedule(result, self.reminder_hours_before)
        return result

    def cancel_appointment(self, appointment_id: int, requester: User, reason: str | None = None) -> AppointmentResult:
        reason = self._validate_text(reason, 'reason', config.MAX_REASON_LENGTH)

        appointment = self._load(appointment_id)
        party = self._cancelling_party(appointment, requester)

        with self._locked_transaction(appointment.provider_id):
            self.db.refresh(appointment)
            now = self.clock.now()
            lifecycle.ensure_cancellable(
                appointment.status,
                appointment.start_time,
                now,
                self.cancellation_cutoff_hours,
            )

            appointment.status = AppointmentStatus.CANCELLED.value
            appointment.cancelled_by = party
            appointment.cancellation_reason = reason or f'Cancelled by {party}'
            appointment.cancelled_at = now

        logger.info('Appointment %s cancelled by %s', appointment_id, party)
        return self._result(appointment)

    def confirm_appointment(self, appointment_id: int, requester: User) -> AppointmentResult:
        appointment = self._load(appointment_id)
        self._authorize_provider_side(appointment, requester)

        with self._locked_transaction(appointment.provider_id):
            self.db.refresh(appointment)
            lifecycle.ensure_transition(appointment.status, AppointmentStatus.CONFIRMED)
            appointment.status = AppointmentStatus.CONFIRMED.value

        logger.info('Appointment %s confirmed', appointment_id)
        return self._result(appointment)

    def complete_appointment(
        self,
        appointment_id: int,
        requester: User,
        outcome_notes: str | None = None,
        diagnosis: str | None = None,
        prescription: str | None = None,
    ) -> AppointmentDetail:
        outcome_notes = self._validate_text(outcome_notes, 'outcome_notes', config.MAX_VET_NOTES_LENGTH)
        diagnosis = self._validate_text(diagnosis, 'diagnosis', config.MAX_NOTES_LENGTH)
        prescription = self._validate_text(prescription, 'prescription', config.MAX_NOTES_LENGTH)

        appointment = self._load(appointment_id)
        self._authorize_provider_side(appointment, requester)

        with self._locked_transaction(appointment.provider_id):
            self.db.refresh(appointment)
            lifecycle.ensure_transition(appointment.status, AppointmentStatus.COMPLETED)
            appointment.status = AppointmentStatus.COMPLETED.value
            if outcome_notes:
                appointment.vet_notes = outcome_notes
            if diagnosis:
                appointment.diagnosis = diagnosis
            if prescription:
                appointment.prescription = prescription

        logger.info('Appointment %s completed', appointment_id)
        with self._reading():
            return AppointmentDetail.from_appointment(appointment)

    def mark_no_show(self, appointment_id: int, requester: User) -> AppointmentResult:
        appointment = self._load(appointment_id)
        self._authorize_provider_side(appointment, requester)

        with self._locked_transaction(appointment.provider_id):
            self.db.refresh(appointment)
            lifecycle.ensure_no_show_eligible(appointment.status, appointment.start_time, self.clock.now())
            appointment.status = AppointmentStatus.NO_SHOW.value

        logger.info('Appointment %s marked as no-show', appointment_id)
        return self._result(appointment)

    def get_appointment(self, appointment_id: int, requester: User) -> AppointmentDetail:
        appointment = self._load(appointment_id)

        if appointment.consumer_id != requester.id and not requester.is_admin:
            self._authorize_provider_side(
                appointment,
                requester,
                message='You do not have permission to view this appointment.',
            )

        with self._reading():
            return AppointmentDetail.from_appointment(appointment)

    def list_appointments(
        self,
        owner_id: int,
        status: str | None = None,
        upcoming: bool = False,
        past: bool = False,
    ) -> list[AppointmentResult]:
        with self._reading():
            appointments = ledger.list_for_owner(
                self.db,
                owner_id,
                self.clock.now(),
                status=status,
                upcoming=upcoming,
                past=past,
            )
            return [AppointmentResult.from_appointment(appointment) for appointment in appointments]

    def list_provider_appointments(
        self,
        provider_id: int,
        requester: User,
        on_date: date | None = None,
        statuses: list[str] | None = None,
    ) -> list[AppointmentDetail]:
        with self._reading():
            provider = directory.get_provider(self.db, provider_id)
            if provider is None:
                raise NotFoundError('Provider')
            if provider.user_id != requester.id and not requester.is_admin:
                raise AuthorizationError('Only the provider or an admin can view this schedule.')

            appointments = ledger.list_for_provider(self.db, provider_id, on_date=on_date, statuses=statuses)
            return [AppointmentDetail.from_appointment(appointment) for appointment in appointments]

    def get_slots(
        self,
        provider_id: int,
        target_date: date,
        granularity_minutes: int = config.DEFAULT_SLOT_MINUTES,
    ) -> list[Slot]:
        with self._reading():
            return generate_slots(
                self.db,
                provider_id,
                target_date,
                now=self.clock.now(),
                granularity_minutes=granularity_minutes,
            )

    # ===== VALIDATION & AUTHORIZATION =====

    def _load(self, appointment_id: int) -> Appointment:
        with self._reading():
            return ledger.get_appointment(self.db, appointment_id)

    def _result(self, appointment: Appointment) -> AppointmentResult:
        with self._reading():
            return AppointmentResult.from_appointment(appointment)

    def _ensure_free(
        self,
        provider_id: int,
        start_time: datetime,
        duration_minutes: int,
        exclude_appointment_id: int | None = None,
    ) -> None:
        conflicts = find_conflicts(self.db, provider_id, start_time, duration_minutes, exclude_appointment_id)
        if conflicts:
            logger.warning(
                'Rejected %s-minute booking at %s for provider %s: overlaps appointment(s) %s',
                duration_minutes,
                start_time,
                provider_id,
                ', '.join(str(appointment.id) for appointment in conflicts),
            )
            raise ConflictError()

    def _validate_future_start(self, start_time: datetime | None) -> datetime:
        if start_time is None:
            raise ValidationError('Appointment date and time is required.', field='start_time')

        start_time = self._normalize_start(start_time)
        self._ensure_future(start_time)
        return start_time

    @staticmethod
    def _normalize_start(start_time: datetime) -> datetime:
        return to_local_naive(start_time).replace(second=0, microsecond=0)

    def _ensure_future(self, start_time: datetime) -> None:
        if start_time <= self.clock.now():
            raise ValidationError('Appointment time must be in the future.', field='start_time')

    def _validate_duration(self, duration_minutes: int) -> int:
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
            raise ValidationError('Duration must be a whole number of minutes.', field='duration_minutes')
        if duration_minutes < config.MIN_DURATION_MINUTES:
            raise ValidationError(
                f'Duration must be at least {config.MIN_DURATION_MINUTES} minutes.',
                field='duration_minutes',
            )
        if duration_minutes > config.MAX_DURATION_MINUTES:
            raise ValidationError(
                f'Duration cannot exceed {config.MAX_DURATION_MINUTES} minutes.',
                field='duration_minutes',
            )
        return duration_minutes

    def _validate_reason(self, reason: str | None) -> str:
        normalized = self._validate_text(reason, 'reason', config.MAX_REASON_LENGTH)
        if not normalized:
            raise ValidationError('Reason for appointment is required.', field='reason')
        return normalized

    @staticmethod
    def _validate_text(value: str | None, field: str, max_length: int) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if len(normalized) > max_length:
            raise ValidationError(f'{field} cannot exceed {max_length} characters.', field=field)
        return normalized

    def _is_provider_user(self, appointment: Appointment, requester: User) -> bool:
        with self._reading():
            provider = directory.get_provider(self.db, appointment.provider_id)
        return provider is not None and provider.user_id is not None and provider.user_id == requester.id

    def _authorize_provider_side(
        self,
        appointment: Appointment,
        requester: User,
        message: str = 'Only the provider or an admin can change this appointment.',
    ) -> None:
        if requester.is_admin or self._is_provider_user(appointment, requester):
            return
        raise AuthorizationError(message)

    def _cancelling_party(self, appointment: Appointment, requester: User) -> str:
        if appointment.consumer_id == requester.id:
            return PARTY_CONSUMER
        if self._is_provider_user(appointment, requester):
            return PARTY_PROVIDER
        if requester.is_admin:
            return PARTY_ADMIN
        raise AuthorizationError('You do not have permission to cancel this appointment.')
