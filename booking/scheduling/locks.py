from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from booking import db
from booking.models.availability import StaffDayLock


def lock_staff_day(staff_id, day):
    """
    Take the write lock serialising bookings for one staff member on one day.

    Must be the first statement of the transaction that scans for conflicts
    and inserts the appointment; the lock is held until that transaction
    commits or rolls back. The lock row is written rather than selected, so
    the lock holds on every backend: a row lock where the database has them,
    the database write lock on SQLite.
    """
    if _touch(staff_id, day):
        return _get(staff_id, day)

    db.session.add(StaffDayLock(staff_id=staff_id, date=day))
    try:
        db.session.flush()
    except IntegrityError:
        # Another booking created the row first; wait on its lock instead
        db.session.rollback()
        current_app.logger.debug(f"Staff day lock for staff {staff_id} on {day} created concurrently")
        _touch(staff_id, day)

    return _get(staff_id, day)


def _touch(staff_id, day):
    return StaffDayLock.query.filter_by(staff_id=staff_id, date=day).update(
        {'locked_at': datetime.utcnow()},
        synchronize_session=False
    )


def _get(staff_id, day):
    return StaffDayLock.query.filter_by(staff_id=staff_id, date=day).one()
