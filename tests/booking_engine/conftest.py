import os
from datetime import datetime, time
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from booking_engine.core.clock import FixedClock  # noqa: E402
from booking_engine.database import Base  # noqa: E402
from booking_engine.models import appointment, reminder  # noqa: E402,F401
from booking_engine.models.pet import Pet  # noqa: E402
from booking_engine.models.provider import AvailabilityWindow, Provider  # noqa: E402
from booking_engine.models.user import User  # noqa: E402
from booking_engine.scheduling.booking import BookingService  # noqa: E402
from booking_engine.scheduling.locks import ProviderLockRegistry  # noqa: E402
from booking_engine.scheduling.reminders import ReminderScheduler  # noqa: E402

# Monday
MONDAY = datetime(2026, 1, 5)


class RecordingSink:
    def __init__(self) -> None:
        self.reminders = []

    def enqueue(self, reminder):
        self.reminders.append(reminder)
        return len(self.reminders)


class FailingSink:
    def enqueue(self, reminder):
        raise ConnectionError('notification queue unreachable')


def seed_directory(db) -> SimpleNamespace:
    consumer = User(email='owner@example.com', full_name='Pet Owner', role='consumer')
    other_consumer = User(email='other@example.com', full_name='Other Owner', role='consumer')
    admin = User(email='admin@example.com', full_name='Clinic Admin', role='admin')
    vet_user = User(email='vet@example.com', full_name='Dr. Vet', role='provider')
    db.add_all([consumer, other_consumer, admin, vet_user])
    db.flush()

    provider = Provider(
        name='Dr. Vet',
        user_id=vet_user.id,
        is_active=True,
        is_verified=True,
        consultation_fee=45.0,
    )
    other_provider = Provider(name='Dr. Other', is_active=True, is_verified=True, consultation_fee=30.0)
    unverified_provider = Provider(name='Dr. Pending', is_active=True, is_verified=False)
    db.add_all([provider, other_provider, unverified_provider])
    db.flush()

    db.add_all([
        AvailabilityWindow(provider_id=provider.id, day_of_week=0, start_time=time(9, 0), end_time=time(12, 0)),
        AvailabilityWindow(
            provider_id=provider.id,
            day_of_week=1,
            start_time=time(9, 0),
            end_time=time(12, 0),
            is_enabled=False,
        ),
        AvailabilityWindow(provider_id=provider.id, day_of_week=2, start_time=time(9, 0), end_time=time(10, 45)),
        AvailabilityWindow(provider_id=other_provider.id, day_of_week=0, start_time=time(9, 0), end_time=time(12, 0)),
    ])

    pet = Pet(owner_id=consumer.id, name='Rex', species='dog')
    other_pet = Pet(owner_id=other_consumer.id, name='Tom', species='cat')
    db.add_all([pet, other_pet])
    db.commit()

    return SimpleNamespace(
        consumer=consumer,
        other_consumer=other_consumer,
        admin=admin,
        vet_user=vet_user,
        provider=provider,
        other_provider=other_provider,
        unverified_provider=unverified_provider,
        pet=pet,
        other_pet=other_pet,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(db):
    return seed_directory(db)


@pytest.fixture
def clock():
    return FixedClock(MONDAY.replace(hour=8))


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def service(db, clock, sink):
    return BookingService(
        db,
        clock=clock,
        reminders=ReminderScheduler(sink, clock),
        locks=ProviderLockRegistry(),
    )


@pytest.fixture
def failing_sink():
    return FailingSink()


@pytest.fixture
def client(db, clock, monkeypatch):
    from fastapi.testclient import TestClient

    from booking_engine import database
    from booking_engine.main import app
    from booking_engine.routes.common import get_clock, get_db

    # Indexes are irrelevant for the in-memory schema.
    monkeypatch.setattr(database, '_appointment_schema_checked', True)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from booking_engine.auth.jwt_handler import create_access_token

    def build(user) -> dict:
        return {'Authorization': f'Bearer {create_access_token(user.id)}'}

    return build
