from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking_engine.auth.dependencies import get_current_user
from booking_engine.core import config
from booking_engine.core.errors import InfrastructureError, SchedulingError
from booking_engine.models.user import User
from booking_engine.routes.common import (
    DATABASE_UNAVAILABLE_DETAIL,
    ensure_database_ready,
    get_booking_service,
    get_db,
    to_http_error,
)
from booking_engine.scheduling import directory
from booking_engine.scheduling.booking import BookingService
from booking_engine.scheduling.results import AppointmentDetail, Slot

router = APIRouter(tags=['availability'])

WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')


class AvailabilityWindowPayload(BaseModel):
    day_of_week: int
    start_time: time
    end_time: time
    is_enabled: bool = True

    @field_validator('day_of_week', mode='before')
    @classmethod
    def validate_day_of_week(cls, value):
        if isinstance(value, str) and not value.strip().isdigit():
            normalized = value.strip().lower()
            if normalized not in WEEKDAY_NAMES:
                raise ValueError('Day must be a weekday name or a number from 0 (Monday) to 6 (Sunday).')
            return WEEKDAY_NAMES.index(normalized)
        return value

    @field_validator('day_of_week')
    @classmethod
    def validate_day_range(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError('Day must be a number from 0 (Monday) to 6 (Sunday).')
        return value

    @model_validator(mode='after')
    def validate_window_order(self):
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be earlier than end time.')
        return self


class AvailabilityWindowResponse(AvailabilityWindowPayload):
    day_name: str

    class Config:
        from_attributes = True


class ReplaceAvailabilityRequest(BaseModel):
    windows: list[AvailabilityWindowPayload]

    @field_validator('windows')
    @classmethod
    def validate_one_window_per_day(cls, value: list[AvailabilityWindowPayload]) -> list[AvailabilityWindowPayload]:
        days = [window.day_of_week for window in value]
        if len(days) != len(set(days)):
            raise ValueError('Only one availability window per weekday is supported.')
        return sorted(value, key=lambda window: window.day_of_week)


def _to_window_response(window) -> AvailabilityWindowResponse:
    return AvailabilityWindowResponse(
        day_of_week=window.day_of_week,
        day_name=WEEKDAY_NAMES[window.day_of_week].capitalize(),
        start_time=window.start_time,
        end_time=window.end_time,
        is_enabled=bool(window.is_enabled),
    )


@router.get('/slots', response_model=list[Slot])
def list_available_slots(
    provider_id: int = Query(...),
    slot_date: date = Query(..., alias='date'),
    granularity_minutes: int = Query(default=config.DEFAULT_SLOT_MINUTES, ge=5, le=config.MAX_DURATION_MINUTES),
    service: BookingService = Depends(get_booking_service),
):
    ensure_database_ready()

    try:
        return service.get_slots(provider_id, slot_date, granularity_minutes=granularity_minutes)
    except (SchedulingError, InfrastructureError) as exc:
        raise to_http_error(exc) from exc


@router.get('/providers/{provider_id}/windows', response_model=list[AvailabilityWindowResponse])
def list_provider_windows(provider_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        provider = directory.get_provider(db, provider_id)
        if provider is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Provider not found.',
            )

        return [_to_window_response(window) for window in provider.availability_windows]
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.put('/providers/{provider_id}/windows', response_model=list[AvailabilityWindowResponse])
def replace_provider_windows(
    provider_id: int,
    data: ReplaceAvailabilityRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        provider = directory.get_provider(db, provider_id)
        if provider is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Provider not found.',
            )

        if provider.user_id != current_user.id and not current_user.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the provider or an admin can change availability.',
            )

        windows = directory.replace_weekly_pattern(
            db,
            provider,
            [window.model_dump() for window in data.windows],
        )
        db.commit()

        return [_to_window_response(window) for window in windows]
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/providers/{provider_id}/appointments', response_model=list[AppointmentDetail])
def list_provider_schedule(
    provider_id: int,
    schedule_date: date | None = Query(default=None, alias='date'),
    status_filter: list[str] | None = Query(default=None, alias='status'),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    ensure_database_ready()

    try:
        return service.list_provider_appointments(
            provider_id,
            current_user,
            on_date=schedule_date,
            statuses=status_filter,
        )
    except (SchedulingError, InfrastructureError) as exc:
        raise to_http_error(exc) from exc
