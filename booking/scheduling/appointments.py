"""
Appointment Engine

Owns Appointment records and orchestrates slot reservation around them.
Appointments and slots are separate aggregates joined by value on
(service_id, date, start_time); every workflow that touches both runs as a
BookingSaga so a failed appointment write hands its freshly reserved slot
back.
"""

from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy import func

from booking import db
from booking.errors import (
    AlreadyCancelled,
    AppointmentNotFound,
    CannotCancelCompleted,
    CannotReschedule,
    ClientRequired,
    InvalidDateRange,
    InvalidStatus,
    PastDate,
    SlotNotConfigured,
    SlotUnavailable,
    TimeConflict,
)
from booking.models.appointment import (
    APPOINTMENT_STATUSES,
    INACTIVE_STATUSES,
    Appointment,
)
from booking.scheduling.directory import ServiceDirectory
from booking.scheduling.locks import lock_staff_day
from booking.scheduling.saga import BookingSaga
from booking.scheduling.slots import SlotManager
from booking.utils.audit import log_audit
from booking.utils.time_utils import (
    add_minutes,
    intervals_overlap,
    normalize_date,
    parse_time,
    today,
)


@dataclass
class AppointmentRequest:
    staff_id: int
    service_id: int
    date: object
    start_time: object
    client_id: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class AppointmentPatch:
    staff_id: Optional[int] = None
    service_id: Optional[int] = None
    date: Optional[object] = None
    start_time: Optional[object] = None
    notes: Optional[str] = None

    def reschedules(self):
        return any(v is not None for v in (self.staff_id, self.service_id, self.date, self.start_time))


def _slot_context(service_id, slot_date, start_time, client_id):
    return {
        'service_id': service_id,
        'date': slot_date,
        'start_time': start_time,
        'client_id': client_id,
    }


class AppointmentEngine:

    def __init__(self, slots=None, services=None):
        self.services = services or ServiceDirectory()
        self.slots = slots or SlotManager(services=self.services)

    # Queries

    def get(self, appointment_id):
        appointment = db.session.get(Appointment, appointment_id)
        if not appointment:
            raise AppointmentNotFound(appointment_id=appointment_id)
        return appointment

    def find_all(self):
        return Appointment.query.order_by(Appointment.date, Appointment.start_time).all()

    def find_by_client(self, client_id):
        return Appointment.query.filter_by(client_id=client_id).order_by(
            Appointment.date.desc(), Appointment.start_time.desc()
        ).all()

    def find_by_staff(self, staff_id):
        return Appointment.query.filter_by(staff_id=staff_id).order_by(
            Appointment.date, Appointment.start_time
        ).all()

    def find_by_date_range(self, start_date, end_date):
        start_date, end_date = self._date_range(start_date, end_date)
        return Appointment.query.filter(
            Appointment.date >= start_date,
            Appointment.date <= end_date
        ).order_by(Appointment.date, Appointment.start_time).all()

    def get_statistics(self, start_date, end_date):
        """Count appointments by status for dates in [start_date, end_date]"""
        start_date, end_date = self._date_range(start_date, end_date)

        rows = db.session.query(
            Appointment.status,
            func.count(Appointment.id)
        ).filter(
            Appointment.date >= start_date,
            Appointment.date <= end_date
        ).group_by(Appointment.status).all()

        stats = {status: 0 for status in APPOINTMENT_STATUSES}
        for status, count in rows:
            stats[status] = count
        stats['total'] = sum(count for _, count in rows)
        return stats

    # Booking

    def create(self, request, acting_user_id=None):
        client_id = request.client_id or acting_user_id
        if not client_id:
            raise ClientRequired()

        duration = self.services.get_duration(request.service_id)
        appointment_date = normalize_date(request.date)
        start_time = parse_time(request.start_time)
        # Rejects end times past midnight (e.g. 23:30 + 60 minutes)
        end_time = parse_time(add_minutes(start_time, duration))

        self.validate_availability(
            request.service_id,
            request.staff_id,
            appointment_date,
            start_time,
            end_time,
            client_id
        )

        slot_args = (request.service_id, appointment_date, start_time, client_id)
        with BookingSaga('create appointment') as saga:
            saga.run(
                'reserve slot',
                lambda: self.slots.reserve(*slot_args),
                compensation=lambda: self.slots.release(*slot_args),
                context=_slot_context(*slot_args)
            )
            appointment = saga.run('persist appointment', lambda: self._insert(
                client_id=client_id,
                staff_id=request.staff_id,
                service_id=request.service_id,
                date=appointment_date,
                start_time=start_time,
                end_time=end_time,
                notes=request.notes
            ))

        current_app.logger.info(
            f"Appointment {appointment.id} booked for client {client_id} with staff {request.staff_id} "
            f"on {appointment_date} {start_time}-{end_time}"
        )
        log_audit('create', 'appointment', entity_id=appointment.id, details={
            'client_id': client_id,
            'staff_id': request.staff_id,
            'service_id': request.service_id,
            'date': appointment_date,
            'start_time': start_time,
            'end_time': end_time,
        }, user_id=acting_user_id)

        return appointment

    def validate_availability(self, service_id, staff_id, date, start_time, end_time,
                              client_id, exclude_appointment_id=None):
        """
        Raise unless the range can be booked for client_id.

        Checks, in order: the date is not in the past, a slot is configured for
        (service, date, start), the slot is available or already held by this
        client, and the staff member has no active appointment overlapping
        [start_time, end_time).
        """
        appointment_date = normalize_date(date)
        if appointment_date < today():
            raise PastDate(date=appointment_date.isoformat())

        start_time = parse_time(start_time)
        end_time = parse_time(end_time)

        slot = self.slots.find_by_key(service_id, appointment_date, start_time)
        if not slot:
            raise SlotNotConfigured(service_id=service_id, date=appointment_date.isoformat(),
                                    start_time=start_time.strftime('%H:%M'))

        if not (slot.is_available() or slot.is_held_by(client_id)):
            current_app.logger.warning(f"Slot {slot.id} is {slot.status}; booking for client {client_id} refused")
            raise SlotUnavailable(slot_id=slot.id)

        self._ensure_no_conflict(staff_id, appointment_date, start_time, end_time, exclude_appointment_id)

    def update(self, appointment_id, patch, acting_user_id=None):
        appointment = self.get(appointment_id)
        if patch.reschedules() and (appointment.status in INACTIVE_STATUSES or appointment.is_completed()):
            current_app.logger.warning(
                f"Appointment {appointment_id} is {appointment.status}; reschedule refused"
            )
            raise CannotReschedule(appointment_id=appointment_id, status=appointment.status)

        client_id = appointment.client_id
        original_key = appointment.slot_key()

        target_service_id = patch.service_id or appointment.service_id
        target_staff_id = patch.staff_id or appointment.staff_id
        target_date = normalize_date(patch.date) if patch.date is not None else appointment.date
        target_start = parse_time(patch.start_time) if patch.start_time is not None else appointment.start_time
        target_end = appointment.end_time

        if patch.reschedules():
            if patch.start_time is not None or patch.service_id is not None:
                duration = self.services.get_duration(target_service_id)
                target_end = parse_time(add_minutes(target_start, duration))

            self.validate_availability(
                target_service_id,
                target_staff_id,
                target_date,
                target_start,
                target_end,
                client_id,
                exclude_appointment_id=appointment_id
            )

        target_key = (target_service_id, target_date, target_start)
        slot_changed = target_key != original_key
        changes = {
            'service_id': target_service_id,
            'staff_id': target_staff_id,
            'date': target_date,
            'start_time': target_start,
            'end_time': target_end,
        }
        if patch.notes is not None:
            changes['notes'] = patch.notes

        new_slot = target_key + (client_id,)
        old_slot = original_key + (client_id,)
        with BookingSaga('update appointment') as saga:
            if slot_changed:
                saga.run(
                    'reserve new slot',
                    lambda: self.slots.reserve(*new_slot),
                    compensation=lambda: self.slots.release(*new_slot),
                    context=_slot_context(*new_slot)
                )
            appointment = saga.run(
                'persist update',
                lambda: self._apply_update(appointment_id, changes, check_conflicts=patch.reschedules())
            )
            if slot_changed:
                saga.settle(
                    'release previous slot',
                    lambda: self.slots.release(*old_slot),
                    context=_slot_context(*old_slot)
                )

        current_app.logger.info(
            f"Appointment {appointment_id} updated"
            + (f"; slot moved from {original_key} to {target_key}" if slot_changed else "")
        )
        log_audit('update', 'appointment', entity_id=appointment_id, details={
            'changes': changes,
            'slot_changed': slot_changed,
        }, user_id=acting_user_id)

        return appointment

    def cancel(self, appointment_id, reason, acting_user_id=None):
        appointment = self.get(appointment_id)

        if appointment.is_cancelled():
            raise AlreadyCancelled(appointment_id=appointment_id)
        if appointment.is_completed():
            raise CannotCancelCompleted(appointment_id=appointment_id)

        appointment.cancel(reason)
        self._commit()

        slot = appointment.slot_key() + (appointment.client_id,)
        BookingSaga('cancel appointment').settle(
            'release slot',
            lambda: self.slots.release(*slot),
            context=_slot_context(*slot)
        )

        current_app.logger.info(f"Appointment {appointment_id} cancelled: {reason}")
        log_audit('cancel', 'appointment', entity_id=appointment_id, details={'reason': reason},
                  user_id=acting_user_id)

        return self.get(appointment_id)

    def remove(self, appointment_id, acting_user_id=None):
        appointment = self.get(appointment_id)
        slot = appointment.slot_key() + (appointment.client_id,)

        db.session.delete(appointment)
        self._commit()

        BookingSaga('remove appointment').settle(
            'release slot',
            lambda: self.slots.release(*slot),
            context=_slot_context(*slot)
        )

        current_app.logger.info(f"Appointment {appointment_id} deleted")
        log_audit('delete', 'appointment', entity_id=appointment_id, details=_slot_context(*slot),
                  user_id=acting_user_id)

    def update_status(self, appointment_id, status, acting_user_id=None):
        """Administrative override: any known status may replace any other"""
        if status not in APPOINTMENT_STATUSES:
            raise InvalidStatus(f"Unknown appointment status '{status}'")

        appointment = self.get(appointment_id)
        previous = appointment.status
        appointment.status = status
        self._commit()

        current_app.logger.info(f"Appointment {appointment_id} status {previous} -> {status}")
        log_audit('update_status', 'appointment', entity_id=appointment_id,
                  details={'from': previous, 'to': status}, user_id=acting_user_id)

        return appointment

    # Internals

    def _insert(self, client_id, staff_id, service_id, date, start_time, end_time, notes=None):
        # Conflict scan and insert are serialised per (staff, date)
        lock_staff_day(staff_id, date)
        self._ensure_no_conflict(staff_id, date, start_time, end_time)

        appointment = Appointment(
            client_id=client_id,
            staff_id=staff_id,
            service_id=service_id,
            date=date,
            start_time=start_time,
            end_time=end_time,
            notes=notes
        )
        db.session.add(appointment)
        db.session.commit()
        return appointment

    def _apply_update(self, appointment_id, changes, check_conflicts):
        if check_conflicts:
            lock_staff_day(changes['staff_id'], changes['date'])
            self._ensure_no_conflict(
                changes['staff_id'],
                changes['date'],
                changes['start_time'],
                changes['end_time'],
                exclude_appointment_id=appointment_id
            )

        appointment = self.get(appointment_id)
        for field, value in changes.items():
            setattr(appointment, field, value)
        db.session.commit()
        return appointment

    def _ensure_no_conflict(self, staff_id, date, start_time, end_time, exclude_appointment_id=None):
        query = Appointment.query.filter(
            Appointment.staff_id == staff_id,
            Appointment.date == date,
            Appointment.status.notin_(INACTIVE_STATUSES)
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        for existing in query.all():
            if intervals_overlap(start_time, end_time, existing.start_time, existing.end_time):
                current_app.logger.warning(
                    f"Staff {staff_id} already booked {existing.start_time}-{existing.end_time} on {date} "
                    f"(appointment {existing.id})"
                )
                raise TimeConflict(appointment_id=existing.id, staff_id=staff_id)

    def _commit(self):
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def _date_range(self, start_date, end_date):
        start_date = normalize_date(start_date)
        end_date = normalize_date(end_date)
        if start_date > end_date:
            raise InvalidDateRange(start_date=start_date.isoformat(), end_date=end_date.isoformat())
        return start_date, end_date
