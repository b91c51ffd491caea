"""
Availability Resolver

Derives a staff member's working and blocked intervals for a date from the
recurring weekly schedule and the date-specific blocks. Intervals are
returned raw (not merged or subtracted); callers decide whether a candidate
range is bookable with StaffAvailability.is_bookable.

Booking checks in the appointment engine are slot-based; this view is the
schedule-based availability offered alongside it.
"""

from dataclasses import dataclass, field
from datetime import time
from typing import List, Optional

from sqlalchemy import or_

from booking.models.availability import Schedule, ScheduleBlock
from booking.utils.time_utils import intervals_overlap, normalize_date, to_minutes


@dataclass(frozen=True)
class Interval:
    start: time
    end: time
    reason: Optional[str] = None

    def contains(self, start, end):
        return to_minutes(self.start) <= to_minutes(start) and to_minutes(end) <= to_minutes(self.end)

    def overlaps(self, start, end):
        return intervals_overlap(start, end, self.start, self.end)


@dataclass
class StaffAvailability:
    staff_id: int
    date: object
    working_intervals: List[Interval] = field(default_factory=list)
    blocked_intervals: List[Interval] = field(default_factory=list)

    @property
    def works_this_day(self):
        return bool(self.working_intervals)

    def is_bookable(self, start, end):
        """Within some working interval and clear of every blocked interval"""
        if not any(interval.contains(start, end) for interval in self.working_intervals):
            return False
        return not any(block.overlaps(start, end) for block in self.blocked_intervals)


class AvailabilityResolver:

    def get_availability(self, staff_id, target_date):
        target_date = normalize_date(target_date)
        day_of_week = target_date.weekday()

        schedules = Schedule.query.filter_by(
            staff_id=staff_id,
            day_of_week=day_of_week,
            is_active=True
        ).order_by(Schedule.start_time).all()

        # Staff-specific blocks plus global ones (no staff_id)
        blocks = ScheduleBlock.query.filter(
            ScheduleBlock.date == target_date,
            ScheduleBlock.is_active.is_(True),
            or_(ScheduleBlock.staff_id == staff_id, ScheduleBlock.staff_id.is_(None))
        ).order_by(ScheduleBlock.start_time).all()

        return StaffAvailability(
            staff_id=staff_id,
            date=target_date,
            working_intervals=[Interval(s.start_time, s.end_time) for s in schedules],
            blocked_intervals=[Interval(b.start_time, b.end_time, b.reason) for b in blocks],
        )
