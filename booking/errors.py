"""
Booking error taxonomy.

Every engine operation fails with one of four kinds: ValidationError,
NotFoundError, ConflictError or AuthorizationError. The concrete subclasses
carry a stable ``code`` an API layer can map to its own responses.
"""


class BookingError(Exception):
    """Base class for all booking engine failures"""

    code = 'booking_error'
    default_message = 'Booking operation failed'

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self):
        return {'code': self.code, 'message': self.message, **self.context}


# Validation

class ValidationError(BookingError):
    code = 'validation_error'
    default_message = 'Invalid input'


class InvalidTimeFormat(ValidationError):
    code = 'invalid_time_format'
    default_message = 'Time must use the HH:MM format with hour 0-23 and minute 0-59'


class InvalidTimeRange(ValidationError):
    code = 'invalid_time_range'
    default_message = 'Start time must be before end time'


class InvalidDate(ValidationError):
    code = 'invalid_date'
    default_message = 'Date must use the YYYY-MM-DD format'


class InvalidDateRange(ValidationError):
    code = 'invalid_date_range'
    default_message = 'Start date must be on or before end date'


class InvalidDuration(ValidationError):
    code = 'invalid_duration'
    default_message = 'Slot duration is not valid for this window'


class InvalidDayOfWeek(ValidationError):
    code = 'invalid_day_of_week'
    default_message = 'Day of week must be between 0 (Monday) and 6 (Sunday)'


class InvalidStatus(ValidationError):
    code = 'invalid_status'
    default_message = 'Unknown status'


class InvalidProvider(ValidationError):
    code = 'invalid_provider'
    default_message = 'User is not a configured service provider'


class InvalidField(ValidationError):
    code = 'invalid_field'
    default_message = 'Unknown field'


class ClientRequired(ValidationError):
    code = 'client_required'
    default_message = 'A client id is required'


class PastDate(ValidationError):
    code = 'past_date'
    default_message = 'Appointments cannot be booked on past dates'


# Not found

class NotFoundError(BookingError):
    code = 'not_found'
    default_message = 'Record not found'


class AppointmentNotFound(NotFoundError):
    code = 'appointment_not_found'
    default_message = 'Appointment not found'


class SlotNotFound(NotFoundError):
    code = 'slot_not_found'
    default_message = 'Slot not found'


class SlotNotConfigured(NotFoundError):
    code = 'slot_not_configured'
    default_message = 'No slot is configured for this service, date and start time'


class ServiceNotFound(NotFoundError):
    code = 'service_not_found'
    default_message = 'Service not found'


class UserNotFound(NotFoundError):
    code = 'user_not_found'
    default_message = 'User not found'


class ProviderNotFound(NotFoundError):
    code = 'provider_not_found'
    default_message = 'Provider not found'


class ClientNotFound(NotFoundError):
    code = 'client_not_found'
    default_message = 'Client not found'


class ScheduleNotFound(NotFoundError):
    code = 'schedule_not_found'
    default_message = 'Schedule not found'


class BlockNotFound(NotFoundError):
    code = 'block_not_found'
    default_message = 'Schedule block not found'


# Conflicts

class ConflictError(BookingError):
    code = 'conflict'
    default_message = 'Operation conflicts with the current state'


class TimeConflict(ConflictError):
    code = 'time_conflict'
    default_message = 'Staff member already has an appointment in this time range'


class SlotUnavailable(ConflictError):
    code = 'slot_unavailable'
    default_message = 'Slot is not available'


class AlreadyCancelled(ConflictError):
    code = 'already_cancelled'
    default_message = 'Appointment is already cancelled'


class CannotReschedule(ConflictError):
    code = 'cannot_reschedule'
    default_message = 'Cancelled, completed and no-show appointments cannot be rescheduled'


class CannotCancelCompleted(ConflictError):
    code = 'cannot_cancel_completed'
    default_message = 'A completed appointment cannot be cancelled'


class NoSlotsGenerated(ConflictError):
    code = 'no_slots_generated'
    default_message = 'No new slots were generated; the window is already covered'


class AuthorizationError(BookingError):
    code = 'forbidden'
    default_message = 'Not allowed to act on this record'
