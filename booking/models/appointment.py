from booking import db
from datetime import datetime

# Appointment status constants
STATUS_PENDING = 'pending'
STATUS_CONFIRMED = 'confirmed'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'
STATUS_NO_SHOW = 'no_show'

APPOINTMENT_STATUSES = (
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_NO_SHOW,
)

# Appointments in these states do not occupy the staff member's time
INACTIVE_STATUSES = (STATUS_CANCELLED, STATUS_NO_SHOW)

class Appointment(db.Model):
    __tablename__ = 'appointments'

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, nullable=False, index=True)
    staff_id = db.Column(db.Integer, nullable=False)
    service_id = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING)
    notes = db.Column(db.Text, nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_appointments_staff_date', 'staff_id', 'date'),
    )

    def __init__(self, client_id, staff_id, service_id, date, start_time, end_time, notes=None):
        self.client_id = client_id
        self.staff_id = staff_id
        self.service_id = service_id
        self.date = date
        self.start_time = start_time
        self.end_time = end_time
        self.notes = notes
        self.status = STATUS_PENDING

    def cancel(self, reason):
        self.status = STATUS_CANCELLED
        self.cancellation_reason = reason

    def is_cancelled(self):
        return self.status == STATUS_CANCELLED

    def is_completed(self):
        return self.status == STATUS_COMPLETED

    def slot_key(self):
        """Value-based join key with ServiceSlot"""
        return (self.service_id, self.date, self.start_time)

    def __repr__(self):
        return f'<Appointment {self.id}: {self.date} {self.start_time} - {self.end_time}>'
