"""Value objects returned by the engine's caller-facing operations."""

from datetime import datetime

from pydantic import BaseModel

from booking_engine.models.appointment import Appointment


class Slot(BaseModel):
    start: datetime
    end: datetime
    available: bool = True


class CancellationInfo(BaseModel):
    by: str
    reason: str | None = None
    at: datetime | None = None


class AppointmentResult(BaseModel):
    id: int
    consumer_id: int
    provider_id: int
    subject_id: int
    start: datetime
    end: datetime
    duration_minutes: int
    status: str
    reason: str
    fee: float | None = None
    is_paid: bool = False
    cancellation: CancellationInfo | None = None

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> 'AppointmentResult':
        return cls(**_base_fields(appointment))


class AppointmentDetail(AppointmentResult):
    symptoms: str | None = None
    notes: str | None = None
    vet_notes: str | None = None
    diagnosis: str | None = None
    prescription: str | None = None
    reminder_sent: bool = False

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> 'AppointmentDetail':
        return cls(
            **_base_fields(appointment),
            symptoms=appointment.symptoms,
            notes=appointment.notes,
            vet_notes=appointment.vet_notes,
            diagnosis=appointment.diagnosis,
            prescription=appointment.prescription,
            reminder_sent=bool(appointment.reminder_sent),
        )


def _base_fields(appointment: Appointment) -> dict:
    cancellation = None
    if appointment.cancelled_by:
        cancellation = CancellationInfo(
            by=appointment.cancelled_by,
            reason=appointment.cancellation_reason,
            at=appointment.cancelled_at,
        )

    return {
        'id': appointment.id,
        'consumer_id': appointment.consumer_id,
        'provider_id': appointment.provider_id,
        'subject_id': appointment.subject_id,
        'start': appointment.start_time,
        'end': appointment.end_time,
        'duration_minutes': appointment.duration_minutes,
        'status': appointment.status,
        'reason': appointment.reason,
        'fee': appointment.fee,
        'is_paid': bool(appointment.is_paid),
        'cancellation': cancellation,
    }
