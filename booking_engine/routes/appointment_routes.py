from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator

from booking_engine.auth.dependencies import get_current_user
from booking_engine.core import config
from booking_engine.core.errors import InfrastructureError, SchedulingError
from booking_engine.models.user import User
from booking_engine.routes.common import ensure_database_ready, get_booking_service, to_http_error
from booking_engine.scheduling.booking import BookingService
from booking_engine.scheduling.results import AppointmentDetail, AppointmentResult

router = APIRouter(tags=['appointments'])


def _strip_optional(value: str | None, max_length: int, label: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > max_length:
        raise ValueError(f'{label} must be {max_length} characters or fewer.')

    return normalized


def _strip_keep_empty(value: str | None, max_length: int, label: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if len(normalized) > max_length:
        raise ValueError(f'{label} must be {max_length} characters or fewer.')

    return normalized


class CreateAppointmentRequest(BaseModel):
    provider_id: int
    subject_id: int
    start_time: datetime
    duration_minutes: int = config.DEFAULT_DURATION_MINUTES
    reason: str
    symptoms: str | None = None
    notes: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Reason for appointment is required.')
        if len(normalized) > config.MAX_REASON_LENGTH:
            raise ValueError(f'Reason must be {config.MAX_REASON_LENGTH} characters or fewer.')
        return normalized

    @field_validator('symptoms', 'notes')
    @classmethod
    def validate_free_text(cls, value: str | None) -> str | None:
        return _strip_optional(value, config.MAX_NOTES_LENGTH, 'Text')


class UpdateAppointmentRequest(BaseModel):
    start_time: datetime | None = None
    duration_minutes: int | None = None
    reason: str | None = None
    symptoms: str | None = None
    notes: str | None = None

    # Empty strings are kept: a blank reason is rejected and blank text clears the field.
    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _strip_keep_empty(value, config.MAX_REASON_LENGTH, 'Reason')

    @field_validator('symptoms', 'notes')
    @classmethod
    def validate_free_text(cls, value: str | None) -> str | None:
        return _strip_keep_empty(value, config.MAX_NOTES_LENGTH, 'Text')


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _strip_optional(value, config.MAX_REASON_LENGTH, 'Cancellation reason')


class CompleteAppointmentRequest(BaseModel):
    outcome_notes: str | None = None
    diagnosis: str | None = None
    prescription: str | None = None

    @field_validator('outcome_notes')
    @classmethod
    def validate_outcome_notes(cls, value: str | None) -> str | None:
        return _strip_optional(value, config.MAX_VET_NOTES_LENGTH, 'Outcome notes')

    @field_validator('diagnosis', 'prescription')
    @classmethod
    def validate_clinical_text(cls, value: str | None) -> str | None:
        return _strip_optional(value, config.MAX_NOTES_LENGTH, 'Text')


@router.get('', response_model=list[AppointmentResult])
def list_my_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    upcoming: bool = Query(default=False),
    past: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    ensure_database_ready()

    try:
        return service.list_appointments(current_user.id, status=status_filter, upcoming=upcoming, past=past)
    except (SchedulingError, InfrastructureError) as exc:
        raise to_http_error(exc) from exc


@router.get('/{appointment_id}', response_model=AppointmentDetail)
def get_appointment_detail(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    ensure_database_ready()

    try:
        return service.get_appointment(appointment_id, current_user)
    except (SchedulingError, InfrastructureError) as exc:
        raise to_http_error(exc) from exc


@router.post('', response_model=AppointmentResult, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    ensure_database_ready()

    try:
        return service.book_appointment(
            current_user,
            provider_id=data.provider_id,
            subject_id=data.subject_id,
            start_time=data.start_time,
            duration_minutes=data.duration_minutes,
            reason=data.reason,
            symptoms=data.symptoms,
            notes=data.notes,
        )
    except (SchedulingError, InfrastructureError) as exc:
        raise to_http_error(exc) from exc


@router.put('/{appointment_id}', response_model=AppointmentResult)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    if not data.model_fields_set:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Nothing to update.',
        )

    ensure_database_ready()

    try:
        return service.update_appointment(
            appointment_id,
            current_user,
            start_time=data.start_time,
            duration_minutes=data.duration_minutes,
            reason=data.reason,
            symptoms=data.symptoms,
            notes=data.notes,
        )
    except (SchedulingError, InfrastructureError) as exc:
        raise to_http_error(exc) from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResult)
def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest | None = None,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    ensure_database_ready()

    try:
        return service.cancel_appointment(appointment_id, current_user, reason=data.reason if data else None)
    except (SchedulingError, InfrastructureError) as exc:
        raise to_http_error(exc) from exc


@router.post('/{appointment_id}/confirm', response_model=AppointmentResult)
def confirm_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    ensure_database_ready()

    try:
        return service.confirm_appointment(appointment_id, current_user)
    except (SchedulingError, InfrastructureError) as exc:
        raise to_http_error(exc) from exc


@router.post('/{appointment_id}/complete', response_model=AppointmentDetail)
def complete_appointment(
    appointment_id: int,
    data: CompleteAppointmentRequest | None = None,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    ensure_database_ready()
    data = data or CompleteAppointmentRequest()

    try:
        return service.complete_appointment(
            appointment_id,
            current_user,
            outcome_notes=data.outcome_notes,
            diagnosis=data.diagnosis,
            prescription=data.prescription,
        )
    except (SchedulingError, InfrastructureError) as exc:
        raise to_http_error(exc) from exc


@router.post('/{appointment_id}/no-show', response_model=AppointmentResult)
def mark_no_show(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    ensure_database_ready()

    try:
        return service.mark_no_show(appointment_id, current_user)
    except (SchedulingError, InfrastructureError) as exc:
        raise to_http_error(exc) from exc
