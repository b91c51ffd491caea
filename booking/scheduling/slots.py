"""
Slot Manager

Owns ServiceSlot records: bulk generation over a time window, lookups, and
the reserve/release/status transitions. Every transition is a single
conditional UPDATE guarded by the state the caller expects, so two
concurrent reservations of the same slot cannot both succeed: the loser's
UPDATE matches no row.
"""

from flask import current_app

from booking import db
from booking.errors import (
    ClientNotFound,
    ClientRequired,
    InvalidDuration,
    InvalidProvider,
    InvalidStatus,
    NoSlotsGenerated,
    ProviderNotFound,
    SlotNotFound,
    SlotUnavailable,
    UserNotFound,
)
from booking.models.service_slot import (
    REUSABLE_SLOT_STATUSES,
    SLOT_AVAILABLE,
    SLOT_BLOCKED,
    SLOT_CANCELLED,
    SLOT_COMPLETED,
    SLOT_RESERVED,
    SLOT_STATUSES,
    ServiceSlot,
)
from booking.scheduling.directory import ServiceDirectory, UserDirectory
from booking.scheduling.policies import ensure_provider_scope
from booking.utils.audit import log_audit
from booking.utils.time_utils import (
    ensure_valid_range,
    format_minutes,
    intervals_overlap,
    normalize_date,
    parse_time,
    to_minutes,
)


class SlotManager:

    def __init__(self, services=None, users=None):
        self.services = services or ServiceDirectory()
        self.users = users or UserDirectory()

    # Generation

    def generate_slots(self, provider_id, service_id, date, window_start, window_end,
                       slot_duration=None, acting_user=None):
        """
        Cut [window_start, window_end) into consecutive slots of slot_duration minutes.

        The walk is greedy from window_start with a fixed step: a candidate that
        overlaps an existing live slot of the same provider and date is skipped,
        which leaves a gap without shifting the slots after it. Cancelled and
        blocked slots do not prevent a new slot from being created over them.
        """
        provider = self._get_provider(provider_id)
        ensure_provider_scope(acting_user, provider.id)
        service = self.services.get_service(service_id)

        duration = slot_duration if slot_duration is not None else service.duration_minutes
        if not duration or duration <= 0:
            raise InvalidDuration(f"Slot duration must be positive, got {duration}")

        slot_date = normalize_date(date)
        start_minutes, end_minutes = ensure_valid_range(window_start, window_end)
        if duration > end_minutes - start_minutes:
            raise InvalidDuration(
                f"Slot duration of {duration} minutes exceeds the {window_start}-{window_end} window"
            )

        existing_slots = ServiceSlot.query.filter_by(
            provider_id=provider.id,
            date=slot_date
        ).order_by(ServiceSlot.start_time).all()
        blocking = [
            (to_minutes(slot.start_time), to_minutes(slot.end_time))
            for slot in existing_slots
            if slot.status not in REUSABLE_SLOT_STATUSES
        ]

        new_slots = []
        current_start = start_minutes
        while current_start + duration <= end_minutes:
            current_end = current_start + duration

            if not any(intervals_overlap(current_start, current_end, s, e) for s, e in blocking):
                new_slots.append(ServiceSlot(
                    service_id=service.id,
                    provider_id=provider.id,
                    provider_type=provider.provider_type,
                    date=slot_date,
                    start_time=parse_time(format_minutes(current_start)),
                    end_time=parse_time(format_minutes(current_end))
                ))

            current_start += duration

        if not new_slots:
            raise NoSlotsGenerated(provider_id=provider.id, date=slot_date.isoformat())

        db.session.add_all(new_slots)
        db.session.commit()

        current_app.logger.info(
            f"Generated {len(new_slots)} slots for provider {provider.id} service {service.id} on {slot_date}"
        )
        log_audit('generate', 'slot', details={
            'provider_id': provider.id,
            'service_id': service.id,
            'date': slot_date,
            'window': [window_start, window_end],
            'duration_minutes': duration,
            'count': len(new_slots),
        }, user_id=acting_user.id if acting_user else None)

        return new_slots

    # Lookups

    def get(self, slot_id):
        slot = db.session.get(ServiceSlot, slot_id)
        if not slot:
            raise SlotNotFound(slot_id=slot_id)
        return slot

    def find_by_key(self, service_id, date, start_time):
        """Slot for the (service, date, start time) join key; the newest row wins"""
        return ServiceSlot.query.filter_by(
            service_id=service_id,
            date=normalize_date(date),
            start_time=parse_time(start_time)
        ).order_by(ServiceSlot.id.desc()).first()

    def find_available(self, service_id, date=None):
        self.services.get_service(service_id)

        query = ServiceSlot.query.filter_by(service_id=service_id, status=SLOT_AVAILABLE)
        if date is not None:
            query = query.filter_by(date=normalize_date(date))
        return query.order_by(ServiceSlot.date, ServiceSlot.start_time).all()

    def find_by_provider(self, provider_id, date=None):
        self._get_provider(provider_id)

        query = ServiceSlot.query.filter_by(provider_id=provider_id)
        if date is not None:
            query = query.filter_by(date=normalize_date(date))
        return query.order_by(ServiceSlot.date, ServiceSlot.start_time).all()

    # Transitions

    def reserve(self, service_id, date, start_time, client_id):
        """Flip the matching AVAILABLE slot to RESERVED for client_id"""
        slot_date = normalize_date(date)
        slot_start = parse_time(start_time)

        candidate = ServiceSlot.query.filter_by(
            service_id=service_id,
            date=slot_date,
            start_time=slot_start,
            status=SLOT_AVAILABLE
        ).first()

        updated = 0
        if candidate:
            updated = ServiceSlot.query.filter_by(
                id=candidate.id,
                status=SLOT_AVAILABLE
            ).update(
                {'status': SLOT_RESERVED, 'client_id': client_id},
                synchronize_session=False
            )

        if not updated:
            db.session.rollback()
            current_app.logger.warning(
                f"Slot for service {service_id} on {slot_date} at {slot_start} unavailable for client {client_id}"
            )
            raise SlotUnavailable(service_id=service_id, date=slot_date.isoformat(),
                                  start_time=slot_start.strftime('%H:%M'))

        db.session.commit()
        slot = db.session.get(ServiceSlot, candidate.id, populate_existing=True)
        current_app.logger.info(f"Slot {slot.id} reserved for client {client_id}")
        return slot

    def release(self, service_id, date, start_time, client_id):
        """Return the client's slot to AVAILABLE; a missing slot or another holder is a no-op"""
        slot_date = normalize_date(date)
        slot_start = parse_time(start_time)

        updated = ServiceSlot.query.filter_by(
            service_id=service_id,
            date=slot_date,
            start_time=slot_start,
            client_id=client_id
        ).update(
            {'status': SLOT_AVAILABLE, 'client_id': None},
            synchronize_session=False
        )
        db.session.commit()

        if updated:
            current_app.logger.info(
                f"Released slot for service {service_id} on {slot_date} at {slot_start} held by client {client_id}"
            )
        else:
            current_app.logger.warning(
                f"No slot for service {service_id} on {slot_date} at {slot_start} held by client {client_id}; nothing released"
            )

    def update_status(self, slot_id, new_status, client_id=None, notes=None, acting_user=None):
        """
        Admin/provider override of a slot's status.

        Only a transition to RESERVED is gated (the slot must be AVAILABLE and
        the client must exist); every other target is accepted from any state.
        """
        if new_status not in SLOT_STATUSES:
            raise InvalidStatus(f"Unknown slot status '{new_status}'")

        slot = self.get(slot_id)
        ensure_provider_scope(acting_user, slot.provider_id)
        observed_status = slot.status
        values = {'status': new_status, 'notes': notes}

        if new_status == SLOT_RESERVED:
            if observed_status != SLOT_AVAILABLE:
                raise SlotUnavailable("Only available slots can be reserved", slot_id=slot_id)
            if not client_id:
                raise ClientRequired("A client is required to reserve a slot")
            try:
                client = self.users.get_user(client_id)
            except UserNotFound:
                raise ClientNotFound(client_id=client_id)
            values['client_id'] = client.id

        elif new_status in (SLOT_AVAILABLE, SLOT_CANCELLED, SLOT_BLOCKED):
            values['client_id'] = None

        elif new_status == SLOT_COMPLETED and client_id:
            values['client_id'] = client_id

        updated = ServiceSlot.query.filter_by(
            id=slot_id,
            status=observed_status
        ).update(values, synchronize_session=False)

        if not updated:
            db.session.rollback()
            raise SlotUnavailable("Slot changed while it was being updated", slot_id=slot_id)

        db.session.commit()
        slot = db.session.get(ServiceSlot, slot_id, populate_existing=True)

        current_app.logger.info(f"Slot {slot_id} status {observed_status} -> {new_status}")
        log_audit('update_status', 'slot', entity_id=slot_id, details={
            'from': observed_status,
            'to': new_status,
            'client_id': slot.client_id,
            'notes': notes,
        }, user_id=acting_user.id if acting_user else None)

        return slot

    def _get_provider(self, provider_id):
        try:
            provider = self.users.get_user(provider_id)
        except UserNotFound:
            raise ProviderNotFound(provider_id=provider_id)

        if not provider.is_provider():
            raise InvalidProvider(f"User {provider_id} is not a service provider")
        if not provider.provider_type:
            raise InvalidProvider(f"Provider {provider_id} has no provider type configured")
        return provider
