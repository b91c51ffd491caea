from flask import current_app

from booking import db
from booking.errors import BlockNotFound, InvalidDateRange, InvalidDayOfWeek, InvalidField, ScheduleNotFound
from booking.models.availability import DAYS_OF_WEEK, Schedule, ScheduleBlock
from booking.utils.audit import audit_log_decorator
from booking.utils.time_utils import ensure_valid_range, normalize_date, parse_time

SCHEDULE_FIELDS = ('staff_id', 'day_of_week', 'start_time', 'end_time', 'is_active')


def _check_day_of_week(day_of_week):
    if day_of_week not in DAYS_OF_WEEK:
        raise InvalidDayOfWeek(day_of_week=day_of_week)


class ScheduleStore:
    """CRUD for recurring schedules and date-specific blocks"""

    # Regular schedules

    @audit_log_decorator(
        action='create',
        entity_type='schedule',
        get_entity_id=lambda result, *args, **kwargs: result.id,
        get_details=lambda result, *args, **kwargs: {
            'staff_id': result.staff_id,
            'day_of_week': result.day_of_week,
            'start_time': result.start_time,
            'end_time': result.end_time,
        }
    )
    def create_schedule(self, staff_id, day_of_week, start_time, end_time, is_active=True):
        _check_day_of_week(day_of_week)
        ensure_valid_range(start_time, end_time)

        schedule = Schedule(
            staff_id=staff_id,
            day_of_week=day_of_week,
            start_time=parse_time(start_time),
            end_time=parse_time(end_time),
            is_active=is_active
        )
        db.session.add(schedule)
        db.session.commit()
        return schedule

    def find_all_schedules(self):
        return Schedule.query.order_by(Schedule.day_of_week, Schedule.start_time).all()

    def find_schedules_by_staff(self, staff_id):
        return Schedule.query.filter_by(staff_id=staff_id).order_by(
            Schedule.day_of_week, Schedule.start_time
        ).all()

    def get_schedule(self, schedule_id):
        schedule = db.session.get(Schedule, schedule_id)
        if not schedule:
            raise ScheduleNotFound(schedule_id=schedule_id)
        return schedule

    @audit_log_decorator(
        action='update',
        entity_type='schedule',
        get_entity_id=lambda result, *args, **kwargs: result.id,
        get_details=lambda result, *args, **kwargs: {
            field: value for field, value in kwargs.items() if value is not None
        }
    )
    def update_schedule(self, schedule_id, **changes):
        """Apply a partial update; the time range is validated against the merged values"""
        unknown = set(changes) - set(SCHEDULE_FIELDS)
        if unknown:
            raise InvalidField(f"Unknown schedule fields: {', '.join(sorted(unknown))}",
                               fields=sorted(unknown))
        schedule = self.get_schedule(schedule_id)

        if changes.get('day_of_week') is not None:
            _check_day_of_week(changes['day_of_week'])

        start_time = changes.get('start_time') or schedule.start_time
        end_time = changes.get('end_time') or schedule.end_time
        ensure_valid_range(start_time, end_time)

        for field, value in changes.items():
            if value is None:
                continue
            if field in ('start_time', 'end_time'):
                value = parse_time(value)
            setattr(schedule, field, value)

        db.session.commit()
        current_app.logger.info(f"Schedule {schedule_id} updated: {sorted(changes)}")
        return schedule

    @audit_log_decorator(
        action='delete',
        entity_type='schedule',
        get_entity_id=lambda result, self, schedule_id: schedule_id
    )
    def remove_schedule(self, schedule_id):
        schedule = self.get_schedule(schedule_id)
        db.session.delete(schedule)
        db.session.commit()

    # Blocks

    @audit_log_decorator(
        action='create',
        entity_type='schedule_block',
        get_entity_id=lambda result, *args, **kwargs: result.id,
        get_details=lambda result, *args, **kwargs: {
            'staff_id': result.staff_id,
            'date': result.date,
            'reason': result.reason,
        }
    )
    def create_block(self, date, start_time, end_time, staff_id=None, reason=None):
        ensure_valid_range(start_time, end_time)

        block = ScheduleBlock(
            date=normalize_date(date),
            start_time=parse_time(start_time),
            end_time=parse_time(end_time),
            staff_id=staff_id,
            reason=reason
        )
        db.session.add(block)
        db.session.commit()
        return block

    def find_all_blocks(self):
        return ScheduleBlock.query.order_by(ScheduleBlock.date, ScheduleBlock.start_time).all()

    def find_blocks_by_date_range(self, start_date, end_date):
        start_date = normalize_date(start_date)
        end_date = normalize_date(end_date)
        if start_date > end_date:
            raise InvalidDateRange(start_date=start_date.isoformat(), end_date=end_date.isoformat())

        return ScheduleBlock.query.filter(
            ScheduleBlock.date >= start_date,
            ScheduleBlock.date <= end_date,
            ScheduleBlock.is_active.is_(True)
        ).order_by(ScheduleBlock.date, ScheduleBlock.start_time).all()

    def find_blocks_by_staff(self, staff_id):
        return ScheduleBlock.query.filter_by(staff_id=staff_id).order_by(
            ScheduleBlock.date, ScheduleBlock.start_time
        ).all()

    @audit_log_decorator(
        action='delete',
        entity_type='schedule_block',
        get_entity_id=lambda result, self, block_id: block_id
    )
    def remove_block(self, block_id):
        block = db.session.get(ScheduleBlock, block_id)
        if not block:
            raise BlockNotFound(block_id=block_id)
        db.session.delete(block)
        db.session.commit()
