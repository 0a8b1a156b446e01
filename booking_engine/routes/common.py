from fastapi import Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking_engine.core.clock import Clock, SystemClock
from booking_engine.core.errors import (
    AuthorizationError,
    ConflictError,
    IneligibleTransitionError,
    InfrastructureError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from booking_engine.database import SessionLocal, ensure_appointment_schema
from booking_engine.scheduling.booking import BookingService

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

_STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (IneligibleTransitionError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
)

_system_clock = SystemClock()


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Clock:
    return _system_clock


def get_booking_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingService:
    return BookingService(db, clock=clock)


def to_http_error(exc: SchedulingError | InfrastructureError) -> HTTPException:
    if isinstance(exc, InfrastructureError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        )

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.to_detail())

    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.to_detail())
