from booking import db
from datetime import datetime

# Days of the week constants (0 = Monday, 6 = Sunday)
MONDAY = 0
TUESDAY = 1
WEDNESDAY = 2
THURSDAY = 3
FRIDAY = 4
SATURDAY = 5
SUNDAY = 6

DAYS_OF_WEEK = (MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY, SUNDAY)

class Schedule(db.Model):
    """Recurring weekly working hours of a staff member"""
    __tablename__ = 'schedules'

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, nullable=False, index=True)
    day_of_week = db.Column(db.Integer, nullable=False)  # 0-6 (Monday-Sunday)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __init__(self, staff_id, day_of_week, start_time, end_time, is_active=True):
        self.staff_id = staff_id
        self.day_of_week = day_of_week
        self.start_time = start_time
        self.end_time = end_time
        self.is_active = is_active

    def __repr__(self):
        if not self.is_active:
            return f'<Schedule: Staff {self.staff_id} Day {self.day_of_week} - INACTIVE>'
        return f'<Schedule: Staff {self.staff_id} Day {self.day_of_week} - {self.start_time} to {self.end_time}>'


class ScheduleBlock(db.Model):
    """Date-specific unavailability; a null staff_id blocks every staff member"""
    __tablename__ = 'schedule_blocks'

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, nullable=True, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __init__(self, date, start_time, end_time, staff_id=None, reason=None, is_active=True):
        self.staff_id = staff_id
        self.date = date
        self.start_time = start_time
        self.end_time = end_time
        self.reason = reason
        self.is_active = is_active

    def is_global(self):
        return self.staff_id is None

    def __repr__(self):
        if self.is_global():
            return f'<ScheduleBlock: all staff {self.date} - {self.reason}>'
        return f'<ScheduleBlock: Staff {self.staff_id} {self.date} {self.start_time} to {self.end_time}>'


class StaffDayLock(db.Model):
    """Row locked while a booking for (staff, date) checks conflicts and inserts"""
    __tablename__ = 'staff_day_locks'

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, nullable=False)
    date = db.Column(db.Date, nullable=False)
    locked_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('staff_id', 'date', name='uq_staff_day_locks_staff_date'),
    )

    def __init__(self, staff_id, date):
        self.staff_id = staff_id
        self.date = date

    def __repr__(self):
        return f'<StaffDayLock: Staff {self.staff_id} {self.date}>'
