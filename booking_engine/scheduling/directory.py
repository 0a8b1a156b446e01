"""Access to the collaborators the engine depends on: providers, their
weekly availability pattern, and the pets appointments are about."""

from datetime import date

from sqlalchemy.orm import Session

from booking_engine.core.errors import NotFoundError
from booking_engine.models.pet import Pet
from booking_engine.models.provider import AvailabilityWindow, Provider
from booking_engine.models.user import User


def get_provider(db: Session, provider_id: int) -> Provider | None:
    return db.query(Provider).filter(Provider.id == provider_id).first()


def get_bookable_provider(db: Session, provider_id: int, *, for_update: bool = False) -> Provider:
    query = db.query(Provider).filter(Provider.id == provider_id)
    if for_update:
        # Row lock serializes bookings for one provider across processes.
        query = query.with_for_update()
    provider = query.first()

    if provider is None or not provider.is_bookable:
        raise NotFoundError('Provider', 'Provider not found or not available.')
    return provider


def get_availability_window(db: Session, provider_id: int, weekday: int) -> AvailabilityWindow | None:
    return db.query(AvailabilityWindow).filter(
        AvailabilityWindow.provider_id == provider_id,
        AvailabilityWindow.day_of_week == weekday,
    ).first()


def get_window_for_date(db: Session, provider_id: int, target_date: date) -> AvailabilityWindow | None:
    window = get_availability_window(db, provider_id, target_date.weekday())
    if window is None or not window.is_enabled:
        return None
    return window


def get_owned_subject(db: Session, subject_id: int, owner_id: int) -> Pet:
    pet = db.query(Pet).filter(
        Pet.id == subject_id,
        Pet.owner_id == owner_id,
        Pet.is_active.is_(True),
    ).first()

    if pet is None:
        raise NotFoundError('Pet', 'Pet not found or you do not have permission.')
    return pet


def get_user(db: Session, user_id: int) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def replace_weekly_pattern(db: Session, provider: Provider, windows: list[dict]) -> list[AvailabilityWindow]:
    """Replace a provider's weekly pattern. The caller commits."""
    provider.availability_windows.clear()
    db.flush()

    for window in windows:
        provider.availability_windows.append(
            AvailabilityWindow(
                day_of_week=window['day_of_week'],
                start_time=window['start_time'],
                end_time=window['end_time'],
                is_enabled=window.get('is_enabled', True),
            )
        )
    db.flush()
    return sorted(provider.availability_windows, key=lambda item: item.day_of_week)
