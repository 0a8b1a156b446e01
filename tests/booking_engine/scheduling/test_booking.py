from datetime import datetime

import pytest

from booking_engine.core.errors import (
    AuthorizationError,
    ConflictError,
    IneligibleTransitionError,
    NotFoundError,
    ValidationError,
)
from booking_engine.models.appointment import Appointment


def _at(hour: int, minute: int = 0, day: int = 5) -> datetime:
    return datetime(2026, 1, day, hour, minute)


def _book(service, seed, start: datetime, duration: int = 30, reason: str = 'Checkup', **kwargs):
    return service.book_appointment(
        seed.consumer,
        seed.provider.id,
        seed.pet.id,
        start,
        duration_minutes=duration,
        reason=reason,
        **kwargs,
    )


# ===== BOOK =====

def test_book_creates_pending_appointment_with_provider_fee(service, seed, db) -> None:
    result = _book(service, seed, _at(10), symptoms='  Limping  ')

    assert result.status == 'pending'
    assert result.start == _at(10)
    assert result.end == _at(10, 30)
    assert result.fee == 45.0
    assert result.is_paid is False
    assert result.cancellation is None

    stored = db.query(Appointment).filter(Appointment.id == result.id).one()
    assert stored.symptoms == 'Limping'
    assert stored.consumer_id == seed.consumer.id


def test_book_uses_default_duration(service, seed) -> None:
    result = service.book_appointment(seed.consumer, seed.provider.id, seed.pet.id, _at(10), reason='Checkup')

    assert result.duration_minutes == 30


def test_book_truncates_start_to_the_minute(service, seed) -> None:
    result = _book(service, seed, datetime(2026, 1, 5, 10, 0, 45, 500))

    assert result.start == _at(10)


def test_touching_appointments_both_succeed(service, seed) -> None:
    first = _book(service, seed, _at(10))
    second = _book(service, seed, _at(10, 30))

    assert first.end == second.start


def test_overlapping_booking_is_rejected(service, seed, db) -> None:
    _book(service, seed, _at(10), duration=60)

    with pytest.raises(ConflictError) as exception_info:
        _book(service, seed, _at(10, 30))

    assert exception_info.value.rule == 'slot_taken'
    assert db.query(Appointment).count() == 1


def test_same_time_with_another_provider_is_allowed(service, seed) -> None:
    _book(service, seed, _at(10))

    other = service.book_appointment(
        seed.consumer,
        seed.other_provider.id,
        seed.pet.id,
        _at(10),
        reason='Second opinion',
    )

    assert other.fee == 30.0


@pytest.mark.parametrize('start', [_at(8), _at(7, 59), datetime(2026, 1, 4, 10, 0)])
def test_book_rejects_start_not_in_future(service, seed, start: datetime) -> None:
    with pytest.raises(ValidationError) as exception_info:
        _book(service, seed, start)

    assert exception_info.value.field == 'start_time'


@pytest.mark.parametrize('duration', [14, 181, 0, -30, True])
def test_book_rejects_out_of_range_duration(service, seed, duration) -> None:
    with pytest.raises(ValidationError) as exception_info:
        _book(service, seed, _at(10), duration=duration)

    assert exception_info.value.field == 'duration_minutes'


@pytest.mark.parametrize('duration', [15, 180])
def test_book_accepts_duration_bounds(service, seed, duration: int) -> None:
    assert _book(service, seed, _at(9), duration=duration).duration_minutes == duration


@pytest.mark.parametrize('reason', [None, '', '   '])
def test_book_requires_reason(service, seed, reason) -> None:
    with pytest.raises(ValidationError) as exception_info:
        _book(service, seed, _at(10), reason=reason)

    assert exception_info.value.field == 'reason'


def test_book_rejects_overlong_notes(service, seed) -> None:
    with pytest.raises(ValidationError) as exception_info:
        _book(service, seed, _at(10), notes='x' * 1001)

    assert exception_info.value.field == 'notes'


def test_book_rejects_pet_of_another_owner(service, seed) -> None:
    with pytest.raises(NotFoundError):
        service.book_appointment(seed.consumer, seed.provider.id, seed.other_pet.id, _at(10), reason='Checkup')


@pytest.mark.parametrize('provider_attr', ['unverified_provider', None])
def test_book_rejects_unavailable_provider(service, seed, provider_attr) -> None:
    provider_id = getattr(seed, provider_attr).id if provider_attr else 9999

    with pytest.raises(NotFoundError) as exception_info:
        service.book_appointment(seed.consumer, provider_id, seed.pet.id, _at(10), reason='Checkup')

    assert exception_info.value.rule == 'not_found'


# ===== UPDATE =====

def test_update_can_move_within_its_own_interval(service, seed) -> None:
    booked = _book(service, seed, _at(10))

    updated = service.update_appointment(booked.id, seed.consumer, start_time=_at(10, 15))

    assert updated.start == _at(10, 15)
    assert updated.end == _at(10, 45)


def test_update_extends_duration(service, seed) -> None:
    booked = _book(service, seed, _at(10))

    updated = service.update_appointment(booked.id, seed.consumer, duration_minutes=60, reason='Longer visit')

    assert updated.end == _at(11)
    assert updated.reason == 'Longer visit'


def test_update_into_another_booking_conflicts(service, seed) -> None:
    _book(service, seed, _at(10))
    later = _book(service, seed, _at(11))

    with pytest.raises(ConflictError):
        service.update_appointment(later.id, seed.consumer, start_time=_at(10, 15))

    assert service.get_appointment(later.id, seed.consumer).start == _at(11)


def test_update_by_stranger_is_forbidden(service, seed) -> None:
    booked = _book(service, seed, _at(10))

    with pytest.raises(AuthorizationError):
        service.update_appointment(booked.id, seed.other_consumer, reason='Hijack')


def test_admin_can_update(service, seed) -> None:
    booked = _book(service, seed, _at(10))

    assert service.update_appointment(booked.id, seed.admin, notes='Bring records').id == booked.id


def test_update_of_completed_appointment_is_rejected(service, seed) -> None:
    booked = _book(service, seed, _at(10))
    service.complete_appointment(booked.id, seed.vet_user)

    with pytest.raises(IneligibleTransitionError) as exception_info:
        service.update_appointment(booked.id, seed.consumer, reason='Follow-up')

    assert exception_info.value.rule == 'terminal_status'


def test_update_of_unknown_appointment_is_not_found(service, seed) -> None:
    with pytest.raises(NotFoundError):
        service.update_appointment(9999, seed.consumer, reason='Checkup')


def test_update_with_unchanged_past_start_edits_text(service, seed, clock) -> None:
    booked = _book(service, seed, _at(10))
    clock.set(_at(10, 30))

    updated = service.update_appointment(booked.id, seed.admin, start_time=_at(10), notes='Arrived late')

    assert updated.start == _at(10)
    assert service.get_appointment(booked.id, seed.admin).notes == 'Arrived late'


def test_update_cannot_move_into_the_past(service, seed, clock) -> None:
    booked = _book(service, seed, _at(11))
    clock.set(_at(10))

    with pytest.raises(ValidationError) as exception_info:
        service.update_appointment(booked.id, seed.consumer, start_time=_at(9, 30))

    assert exception_info.value.field == 'start_time'
    assert service.get_appointment(booked.id, seed.consumer).start == _at(11)


def test_update_with_empty_text_clears_field(service, seed) -> None:
    booked = _book(service, seed, _at(10), symptoms='Coughing', notes='Side entrance')

    service.update_appointment(booked.id, seed.consumer, symptoms='', notes='  ')

    detail = service.get_appointment(booked.id, seed.consumer)
    assert detail.symptoms is None
    assert detail.notes is None


def test_update_with_blank_reason_is_rejected(service, seed) -> None:
    booked = _book(service, seed, _at(10))

    with pytest.raises(ValidationError) as exception_info:
        service.update_appointment(booked.id, seed.consumer, reason='')

    assert exception_info.value.field == 'reason'
    assert service.get_appointment(booked.id, seed.consumer).reason == 'Checkup'


# ===== CANCEL =====

def test_consumer_cancels_before_cutoff(service, seed, clock) -> None:
    booked = _book(service, seed, _at(11))

    cancelled = service.cancel_appointment(booked.id, seed.consumer)

    assert cancelled.status == 'cancelled'
    assert cancelled.cancellation.by == 'consumer'
    assert cancelled.cancellation.reason == 'Cancelled by consumer'
    assert cancelled.cancellation.at == clock.now()


def test_cancel_inside_cutoff_is_rejected(service, seed, clock) -> None:
    booked = _book(service, seed, _at(11))
    clock.advance(hours=2)

    with pytest.raises(IneligibleTransitionError) as exception_info:
        service.cancel_appointment(booked.id, seed.consumer)

    assert exception_info.value.rule == 'cancellation_cutoff'
    assert service.get_appointment(booked.id, seed.consumer).status == 'pending'


def test_second_cancel_is_rejected_and_record_survives(service, seed) -> None:
    booked = _book(service, seed, _at(11))
    service.cancel_appointment(booked.id, seed.consumer, reason='Feeling better')

    with pytest.raises(IneligibleTransitionError) as exception_info:
        service.cancel_appointment(booked.id, seed.consumer)

    assert exception_info.value.rule == 'terminal_status'
    detail = service.get_appointment(booked.id, seed.consumer)
    assert detail.status == 'cancelled'
    assert detail.cancellation.reason == 'Feeling better'


@pytest.mark.parametrize(('requester_attr', 'party'), [('vet_user', 'provider'), ('admin', 'admin')])
def test_cancel_records_cancelling_party(service, seed, requester_attr: str, party: str) -> None:
    booked = _book(service, seed, _at(11))

    cancelled = service.cancel_appointment(booked.id, getattr(seed, requester_attr))

    assert cancelled.cancellation.by == party


def test_cancel_by_stranger_is_forbidden(service, seed) -> None:
    booked = _book(service, seed, _at(11))

    with pytest.raises(AuthorizationError):
        service.cancel_appointment(booked.id, seed.other_consumer)


def test_cancelled_interval_can_be_rebooked(service, seed) -> None:
    booked = _book(service, seed, _at(11))
    service.cancel_appointment(booked.id, seed.consumer)

    assert _book(service, seed, _at(11)).status == 'pending'


# ===== PROVIDER-SIDE TRANSITIONS =====

def test_provider_confirms_then_completes(service, seed) -> None:
    booked = _book(service, seed, _at(10))

    assert service.confirm_appointment(booked.id, seed.vet_user).status == 'confirmed'

    detail = service.complete_appointment(
        booked.id,
        seed.vet_user,
        outcome_notes='Healthy',
        diagnosis='None',
        prescription='Rest',
    )

    assert detail.status == 'completed'
    assert detail.vet_notes == 'Healthy'
    assert detail.diagnosis == 'None'
    assert detail.prescription == 'Rest'


def test_consumer_cannot_confirm(service, seed) -> None:
    booked = _book(service, seed, _at(10))

    with pytest.raises(AuthorizationError):
        service.confirm_appointment(booked.id, seed.consumer)


def test_confirm_twice_is_illegal(service, seed) -> None:
    booked = _book(service, seed, _at(10))
    service.confirm_appointment(booked.id, seed.admin)

    with pytest.raises(IneligibleTransitionError) as exception_info:
        service.confirm_appointment(booked.id, seed.admin)

    assert exception_info.value.rule == 'illegal_transition'


def test_no_show_only_after_start(service, seed, clock) -> None:
    booked = _book(service, seed, _at(10))

    with pytest.raises(IneligibleTransitionError) as exception_info:
        service.mark_no_show(booked.id, seed.vet_user)
    assert exception_info.value.rule == 'not_started'

    clock.set(_at(10, 30))
    assert service.mark_no_show(booked.id, seed.vet_user).status == 'no-show'


def test_no_show_frees_the_interval(service, seed, clock) -> None:
    booked = _book(service, seed, _at(10), duration=120)
    clock.set(_at(10, 5))
    service.mark_no_show(booked.id, seed.vet_user)

    assert _book(service, seed, _at(11)).status == 'pending'


# ===== READS =====

def test_get_appointment_visibility(service, seed) -> None:
    booked = _book(service, seed, _at(10), notes='Side entrance')

    assert service.get_appointment(booked.id, seed.consumer).notes == 'Side entrance'
    assert service.get_appointment(booked.id, seed.vet_user).id == booked.id
    assert service.get_appointment(booked.id, seed.admin).id == booked.id
    with pytest.raises(AuthorizationError):
        service.get_appointment(booked.id, seed.other_consumer)


def test_list_appointments_filters(service, seed, clock) -> None:
    early = _book(service, seed, _at(10))
    late = _book(service, seed, _at(11))
    service.cancel_appointment(early.id, seed.consumer)

    assert [item.id for item in service.list_appointments(seed.consumer.id)] == [late.id, early.id]
    assert [item.id for item in service.list_appointments(seed.consumer.id, status='Cancelled')] == [early.id]
    assert [item.id for item in service.list_appointments(seed.consumer.id, upcoming=True)] == [late.id]
    assert service.list_appointments(seed.consumer.id, past=True) == []

    clock.set(_at(12, day=6))
    assert [item.id for item in service.list_appointments(seed.consumer.id, past=True)] == [late.id, early.id]
    assert service.list_appointments(seed.other_consumer.id) == []


def test_list_appointments_rejects_conflicting_filters(service, seed) -> None:
    with pytest.raises(ValidationError):
        service.list_appointments(seed.consumer.id, upcoming=True, past=True)


def test_list_appointments_rejects_unknown_status(service, seed) -> None:
    with pytest.raises(ValidationError) as exception_info:
        service.list_appointments(seed.consumer.id, status='rescheduled')

    assert exception_info.value.field == 'status'


def test_provider_schedule(service, seed) -> None:
    later = _book(service, seed, _at(11))
    earlier = _book(service, seed, _at(9))
    _book(service, seed, _at(10, day=7))

    schedule = service.list_provider_appointments(seed.provider.id, seed.vet_user, on_date=_at(0).date())

    assert [item.id for item in schedule] == [earlier.id, later.id]
    assert len(service.list_provider_appointments(seed.provider.id, seed.admin)) == 3
    assert service.list_provider_appointments(seed.provider.id, seed.admin, statuses=['confirmed']) == []


def test_provider_schedule_is_private(service, seed) -> None:
    with pytest.raises(AuthorizationError):
        service.list_provider_appointments(seed.provider.id, seed.consumer)

    with pytest.raises(NotFoundError):
        service.list_provider_appointments(9999, seed.admin)
