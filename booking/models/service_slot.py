from booking import db
from datetime import datetime

# Slot status constants
SLOT_AVAILABLE = 'available'
SLOT_RESERVED = 'reserved'
SLOT_BLOCKED = 'blocked'
SLOT_COMPLETED = 'completed'
SLOT_CANCELLED = 'cancelled'

SLOT_STATUSES = (SLOT_AVAILABLE, SLOT_RESERVED, SLOT_BLOCKED, SLOT_COMPLETED, SLOT_CANCELLED)

# Existing slots in these states may be overwritten by a new generation run
REUSABLE_SLOT_STATUSES = (SLOT_CANCELLED, SLOT_BLOCKED)

class ServiceSlot(db.Model):
    __tablename__ = 'service_slots'

    id = db.Column(db.Integer, primary_key=True)
    service_id = db.Column(db.Integer, nullable=False)
    provider_id = db.Column(db.Integer, nullable=False)
    provider_type = db.Column(db.String(50), nullable=True)
    date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=SLOT_AVAILABLE)
    client_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_service_slots_service_date', 'service_id', 'date'),
        db.Index('ix_service_slots_provider_date', 'provider_id', 'date'),
    )

    def __init__(self, service_id, provider_id, date, start_time, end_time, provider_type=None):
        self.service_id = service_id
        self.provider_id = provider_id
        self.provider_type = provider_type
        self.date = date
        self.start_time = start_time
        self.end_time = end_time
        self.status = SLOT_AVAILABLE
        self.client_id = None

    def is_available(self):
        return self.status == SLOT_AVAILABLE

    def is_held_by(self, client_id):
        return self.status == SLOT_RESERVED and self.client_id == client_id

    def __repr__(self):
        return f'<ServiceSlot {self.id}: {self.date} {self.start_time} - {self.end_time} ({self.status})>'
