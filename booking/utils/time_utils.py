from datetime import date, datetime, time
import re

from booking.errors import InvalidDate, InvalidTimeFormat, InvalidTimeRange

_TIME_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2}))?$')


def today():
    """Current day used for past-date checks"""
    return date.today()


def to_minutes(value):
    """
    Convert a time of day to minutes since midnight

    Accepts 'HH:MM', 'HH:MM:SS' or a datetime.time. Hours must be 0-23 and
    minutes 0-59; seconds are accepted and ignored.
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    if not isinstance(value, str):
        raise InvalidTimeFormat(f"Cannot read a time from {value!r}")

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidTimeFormat(f"Malformed time '{value}'")

    hours = int(match.group(1))
    minutes = int(match.group(2))
    seconds = int(match.group(3) or 0)
    if not 0 <= hours <= 23 or not 0 <= minutes <= 59 or not 0 <= seconds <= 59:
        raise InvalidTimeFormat(f"Time out of range '{value}'")

    return hours * 60 + minutes


def format_minutes(total_minutes):
    """Format minutes since midnight as zero-padded HH:MM (hours may exceed 23)"""
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def add_minutes(value, duration):
    # Not clamped at midnight: 23:30 + 60 gives '24:30', which parse_time rejects
    return format_minutes(to_minutes(value) + duration)


def parse_time(value):
    """Validate a time of day and return it as datetime.time"""
    total = to_minutes(value)
    return time(total // 60, total % 60)


def intervals_overlap(a_start, a_end, b_start, b_end):
    """
    True when the half-open ranges [a_start, a_end) and [b_start, b_end) share an instant

    Arguments may be minute offsets, 'HH:MM' strings or datetime.time values.
    Touching ranges (a_end == b_start) do not overlap.
    """
    a_start, a_end, b_start, b_end = (
        v if isinstance(v, int) else to_minutes(v) for v in (a_start, a_end, b_start, b_end)
    )
    return (
        (a_start >= b_start and a_start < b_end)
        or (a_end > b_start and a_end <= b_end)
        or (a_start <= b_start and a_end >= b_end)
    )


def normalize_date(value):
    """Truncate a date, datetime or 'YYYY-MM-DD' string to a date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip()[:10], '%Y-%m-%d').date()
        except ValueError:
            raise InvalidDate(f"Invalid date '{value}'")
    raise InvalidDate(f"Cannot read a date from {value!r}")


def ensure_valid_range(start, end):
    """Raise InvalidTimeRange unless start is strictly before end; returns both as minutes"""
    start_minutes = to_minutes(start)
    end_minutes = to_minutes(end)
    if start_minutes >= end_minutes:
        raise InvalidTimeRange(f"Start time {start} must be before end time {end}")
    return start_minutes, end_minutes
