"""
Tests for booking/scheduling/appointments.py

Covers booking, rescheduling, cancellation and the compensation path that
hands a reserved slot back when the appointment write fails.
"""

from datetime import date, time, timedelta
from unittest.mock import patch

import pytest

from booking.errors import (
    AlreadyCancelled,
    AppointmentNotFound,
    CannotCancelCompleted,
    CannotReschedule,
    ClientRequired,
    InvalidDateRange,
    InvalidStatus,
    InvalidTimeFormat,
    PastDate,
    SlotNotConfigured,
    SlotUnavailable,
    TimeConflict,
)
from booking.models.appointment import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_NO_SHOW,
    STATUS_PENDING,
    Appointment,
)
from booking.models.audit import AuditLog
from booking.models.service_slot import SLOT_AVAILABLE, SLOT_RESERVED, ServiceSlot
from booking.scheduling.appointments import AppointmentPatch, AppointmentRequest


def _book(engine, users, service, day, start, client='client', **kwargs):
    return engine.create(AppointmentRequest(
        staff_id=users['provider'].id,
        service_id=service.id,
        date=day,
        start_time=start,
        client_id=users[client].id,
        **kwargs
    ))


def _reserved(service, day):
    return ServiceSlot.query.filter_by(service_id=service.id, date=day, status=SLOT_RESERVED).all()


class TestCreate:

    def test_books_and_reserves_slot(self, engine, slots, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00', notes='First visit')

        assert appointment.status == STATUS_PENDING
        assert appointment.start_time == time(9, 0)
        assert appointment.end_time == time(9, 30)
        assert appointment.notes == 'First visit'

        slot = slots.find_by_key(service.id, booking_day, '09:00')
        assert slot.status == SLOT_RESERVED
        assert slot.client_id == users['client'].id

    def test_client_defaults_to_acting_user(self, engine, users, service, booking_day, morning_slots):
        appointment = engine.create(AppointmentRequest(
            staff_id=users['provider'].id,
            service_id=service.id,
            date=booking_day,
            start_time='09:30'
        ), acting_user_id=users['second_client'].id)

        assert appointment.client_id == users['second_client'].id

    def test_client_required(self, engine, users, service, booking_day, morning_slots):
        with pytest.raises(ClientRequired):
            engine.create(AppointmentRequest(
                staff_id=users['provider'].id,
                service_id=service.id,
                date=booking_day,
                start_time='09:00'
            ))

    def test_overlapping_booking_for_same_staff_conflicts(self, engine, slots, users, service, booking_day,
                                                          morning_slots):
        # A 10:15 slot exists only on another provider's calendar
        slots.generate_slots(users['other_provider'].id, service.id, booking_day, '10:15', '10:45')
        _book(engine, users, service, booking_day, '10:00')

        with pytest.raises(TimeConflict):
            _book(engine, users, service, booking_day, '10:15', client='second_client')

        late = slots.find_by_key(service.id, booking_day, '10:15')
        assert late.status == SLOT_AVAILABLE
        assert Appointment.query.count() == 1

    def test_back_to_back_bookings_do_not_conflict(self, engine, users, service, booking_day, morning_slots):
        _book(engine, users, service, booking_day, '10:00')
        _book(engine, users, service, booking_day, '10:30', client='second_client')
        assert Appointment.query.count() == 2

    def test_reserved_slot_cannot_be_booked(self, engine, users, service, booking_day, morning_slots):
        _book(engine, users, service, booking_day, '09:00')

        with pytest.raises(SlotUnavailable):
            _book(engine, users, service, booking_day, '09:00', client='second_client')

    def test_past_date(self, engine, users, service, morning_slots):
        yesterday = date.today() - timedelta(days=1)
        with pytest.raises(PastDate):
            _book(engine, users, service, yesterday, '09:00')

    def test_slot_not_configured(self, engine, users, service, booking_day, morning_slots):
        with pytest.raises(SlotNotConfigured):
            _book(engine, users, service, booking_day, '13:00')

    def test_end_time_past_midnight_is_rejected(self, engine, users, long_service, booking_day):
        with pytest.raises(InvalidTimeFormat):
            _book(engine, users, long_service, booking_day, '23:30')

    def test_booking_is_audited(self, engine, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')

        entry = AuditLog.query.filter_by(action='create', entity_type='appointment').one()
        assert entry.entity_id == appointment.id
        assert entry.get_details_dict()['start_time'] == '09:00'


class TestCompensation:

    def test_failed_insert_releases_reserved_slot(self, engine, slots, users, service, booking_day, morning_slots):
        with patch.object(engine, '_insert', side_effect=RuntimeError('database unavailable')):
            with pytest.raises(RuntimeError, match='database unavailable'):
                _book(engine, users, service, booking_day, '09:00')

        slot = slots.find_by_key(service.id, booking_day, '09:00')
        assert slot.status == SLOT_AVAILABLE
        assert slot.client_id is None
        assert Appointment.query.count() == 0

    def test_conflict_found_under_lock_releases_slot(self, engine, slots, users, service, booking_day,
                                                     morning_slots):
        """A competing booking that lands after validation is caught by the locked re-check"""
        _book(engine, users, service, booking_day, '10:00')

        with patch.object(engine, '_ensure_no_conflict', wraps=engine._ensure_no_conflict) as check:
            check.side_effect = [None, TimeConflict()]
            with pytest.raises(TimeConflict):
                _book(engine, users, service, booking_day, '09:00', client='second_client')

        assert slots.find_by_key(service.id, booking_day, '09:00').status == SLOT_AVAILABLE

    def test_exhausted_compensation_is_recorded(self, app, engine, slots, users, service, booking_day,
                                                morning_slots):
        with patch.object(engine, '_insert', side_effect=RuntimeError('database unavailable')), \
                patch.object(slots, 'release', side_effect=RuntimeError('still unavailable')) as release:
            with pytest.raises(RuntimeError, match='database unavailable'):
                _book(engine, users, service, booking_day, '09:00')

        assert release.call_count == app.config['SLOT_RELEASE_RETRIES'] + 1

        entry = AuditLog.query.filter_by(action='compensation_failed', entity_type='saga').one()
        details = entry.get_details_dict()
        assert details['step'] == 'reserve slot'
        assert details['client_id'] == users['client'].id

        # The orphaned reservation stays behind for manual repair
        assert slots.find_by_key(service.id, booking_day, '09:00').status == SLOT_RESERVED


class TestUpdate:

    def test_moving_start_time_moves_reservation(self, engine, slots, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')

        updated = engine.update(appointment.id, AppointmentPatch(start_time='10:00'))

        assert updated.start_time == time(10, 0)
        assert updated.end_time == time(10, 30)
        reserved = _reserved(service, booking_day)
        assert [s.start_time for s in reserved] == [time(10, 0)]
        assert reserved[0].client_id == users['client'].id

    def test_moving_into_own_range_does_not_conflict_with_itself(self, engine, users, service, booking_day,
                                                                 morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')
        updated = engine.update(appointment.id, AppointmentPatch(start_time='09:30'))
        assert updated.start_time == time(9, 30)

    def test_notes_only_keeps_slot(self, engine, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')

        updated = engine.update(appointment.id, AppointmentPatch(notes='Bring photos'))

        assert updated.notes == 'Bring photos'
        assert [s.start_time for s in _reserved(service, booking_day)] == [time(9, 0)]

    def test_moving_onto_taken_slot_fails_and_keeps_original(self, engine, users, service, booking_day,
                                                             morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')
        _book(engine, users, service, booking_day, '10:00', client='second_client')

        with pytest.raises(SlotUnavailable):
            engine.update(appointment.id, AppointmentPatch(start_time='10:00'))

        assert engine.get(appointment.id).start_time == time(9, 0)
        assert len(_reserved(service, booking_day)) == 2

    def test_failed_persist_releases_new_slot(self, engine, slots, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')

        with patch.object(engine, '_apply_update', side_effect=RuntimeError('write failed')):
            with pytest.raises(RuntimeError):
                engine.update(appointment.id, AppointmentPatch(start_time='11:00'))

        assert slots.find_by_key(service.id, booking_day, '11:00').status == SLOT_AVAILABLE
        assert slots.find_by_key(service.id, booking_day, '09:00').status == SLOT_RESERVED

    def test_service_change_recomputes_end_time(self, engine, slots, users, service, long_service, booking_day,
                                                morning_slots):
        slots.generate_slots(users['provider'].id, long_service.id, booking_day, '13:00', '14:00')
        appointment = _book(engine, users, service, booking_day, '09:00')

        updated = engine.update(appointment.id, AppointmentPatch(service_id=long_service.id, start_time='13:00'))

        assert updated.service_id == long_service.id
        assert updated.end_time == time(14, 0)
        assert slots.find_by_key(service.id, booking_day, '09:00').status == SLOT_AVAILABLE

    @pytest.mark.parametrize('status', [STATUS_CANCELLED, STATUS_COMPLETED, STATUS_NO_SHOW])
    def test_closed_appointment_cannot_be_rescheduled(self, engine, users, service, booking_day, morning_slots,
                                                      status):
        appointment = _book(engine, users, service, booking_day, '09:00')
        engine.update_status(appointment.id, status)

        with pytest.raises(CannotReschedule):
            engine.update(appointment.id, AppointmentPatch(start_time='10:00'))

        assert engine.get(appointment.id).start_time == time(9, 0)
        assert [s.start_time for s in _reserved(service, booking_day)] == [time(9, 0)]

    def test_cancelled_appointment_notes_can_change(self, engine, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')
        engine.cancel(appointment.id, 'Moved abroad')

        updated = engine.update(appointment.id, AppointmentPatch(notes='Refund issued'))

        assert updated.notes == 'Refund issued'
        assert updated.status == STATUS_CANCELLED
        assert _reserved(service, booking_day) == []

    def test_missing_appointment(self, engine):
        with pytest.raises(AppointmentNotFound):
            engine.update(9999, AppointmentPatch(notes='x'))


class TestCancelAndRemove:

    def test_cancel_releases_slot(self, engine, slots, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')

        cancelled = engine.cancel(appointment.id, 'Feeling unwell')

        assert cancelled.status == STATUS_CANCELLED
        assert cancelled.cancellation_reason == 'Feeling unwell'
        assert slots.find_by_key(service.id, booking_day, '09:00').status == SLOT_AVAILABLE

    def test_cancelled_time_can_be_rebooked(self, engine, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')
        engine.cancel(appointment.id, 'Moved')

        rebooked = _book(engine, users, service, booking_day, '09:00', client='second_client')
        assert rebooked.client_id == users['second_client'].id

    def test_cancel_twice(self, engine, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')
        engine.cancel(appointment.id, 'First')

        with pytest.raises(AlreadyCancelled):
            engine.cancel(appointment.id, 'Second')

    def test_cannot_cancel_completed(self, engine, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')
        engine.update_status(appointment.id, STATUS_COMPLETED)

        with pytest.raises(CannotCancelCompleted):
            engine.cancel(appointment.id, 'Too late')

    def test_cancel_survives_failed_release(self, app, engine, slots, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')

        with patch.object(slots, 'release', side_effect=RuntimeError('lock timeout')):
            cancelled = engine.cancel(appointment.id, 'Changed plans')

        assert cancelled.status == STATUS_CANCELLED
        assert AuditLog.query.filter_by(action='compensation_failed').count() == 1

    def test_remove_releases_slot(self, engine, slots, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')

        engine.remove(appointment.id)

        assert Appointment.query.count() == 0
        assert slots.find_by_key(service.id, booking_day, '09:00').status == SLOT_AVAILABLE
        with pytest.raises(AppointmentNotFound):
            engine.get(appointment.id)


class TestStatusAndQueries:

    @pytest.mark.parametrize('status', [STATUS_CONFIRMED, STATUS_COMPLETED, STATUS_NO_SHOW, STATUS_PENDING])
    def test_status_override(self, engine, users, service, booking_day, morning_slots, status):
        appointment = _book(engine, users, service, booking_day, '09:00')
        assert engine.update_status(appointment.id, status).status == status

    def test_completed_may_return_to_pending(self, engine, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')
        engine.update_status(appointment.id, STATUS_COMPLETED)
        assert engine.update_status(appointment.id, STATUS_PENDING).status == STATUS_PENDING

    def test_unknown_status(self, engine, users, service, booking_day, morning_slots):
        appointment = _book(engine, users, service, booking_day, '09:00')
        with pytest.raises(InvalidStatus):
            engine.update_status(appointment.id, 'rescheduled')

    def test_no_show_frees_staff_time(self, engine, slots, users, service, booking_day, morning_slots):
        slots.generate_slots(users['other_provider'].id, service.id, booking_day, '09:15', '09:45')
        appointment = _book(engine, users, service, booking_day, '09:00')
        engine.update_status(appointment.id, STATUS_NO_SHOW)

        overlapping = _book(engine, users, service, booking_day, '09:15', client='second_client')
        assert overlapping.start_time == time(9, 15)

    def test_queries(self, engine, users, service, booking_day, morning_slots):
        first = _book(engine, users, service, booking_day, '09:00')
        second = _book(engine, users, service, booking_day, '10:00')
        _book(engine, users, service, booking_day, '11:00', client='second_client')

        assert len(engine.find_all()) == 3
        assert [a.id for a in engine.find_by_client(users['client'].id)] == [second.id, first.id]
        assert len(engine.find_by_staff(users['provider'].id)) == 3
        assert len(engine.find_by_date_range(booking_day, booking_day)) == 3
        assert engine.find_by_date_range(booking_day + timedelta(days=1), booking_day + timedelta(days=2)) == []

    def test_reversed_date_range(self, engine, booking_day):
        with pytest.raises(InvalidDateRange):
            engine.find_by_date_range(booking_day, booking_day - timedelta(days=1))

    def test_statistics(self, engine, users, service, booking_day, morning_slots):
        first = _book(engine, users, service, booking_day, '09:00')
        _book(engine, users, service, booking_day, '10:00')
        engine.cancel(first.id, 'No longer needed')

        stats = engine.get_statistics(booking_day, booking_day)

        assert stats[STATUS_PENDING] == 1
        assert stats[STATUS_CANCELLED] == 1
        assert stats[STATUS_COMPLETED] == 0
        assert stats['total'] == 2
