# Import all models here for easier imports elsewhere
from .user import User
from .service import Service
from .appointment import Appointment
from .service_slot import ServiceSlot
from .availability import Schedule, ScheduleBlock, StaffDayLock
from .audit import AuditLog
