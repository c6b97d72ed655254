"""Appointment and availability engine for MediBook."""

from medibook.scheduling.errors import (
    ConflictError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ScheduleOverlapError,
    SchedulingError,
    SlotUnavailableError,
)
from medibook.scheduling.locks import KeyedLock
from medibook.scheduling.models import (
    Actor,
    ActorRole,
    Appointment,
    AppointmentCandidate,
    AppointmentStatus,
    DaySchedule,
    Doctor,
    Leave,
    LeaveDecision,
    LeaveStatus,
    Patient,
    TimeSlot,
    WeeklyScheduleTemplate,
)
from medibook.scheduling.service import SchedulingService
from medibook.scheduling.store import InMemorySchedulingStore, SchedulingStore

__all__ = [
    "Actor",
    "ActorRole",
    "Appointment",
    "AppointmentCandidate",
    "AppointmentStatus",
    "ConflictError",
    "DaySchedule",
    "Doctor",
    "InMemorySchedulingStore",
    "InvalidInputError",
    "InvalidTransitionError",
    "KeyedLock",
    "Leave",
    "LeaveDecision",
    "LeaveStatus",
    "NotFoundError",
    "Patient",
    "PermissionDeniedError",
    "ScheduleOverlapError",
    "SchedulingError",
    "SchedulingService",
    "SchedulingStore",
    "SlotUnavailableError",
    "TimeSlot",
    "WeeklyScheduleTemplate",
]
