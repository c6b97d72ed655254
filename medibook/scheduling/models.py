"""Pydantic models for the appointment and availability engine."""

import uuid
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer, model_validator
from pydantic.alias_generators import to_camel

from medibook.scheduling.calendar import overlaps, weekday_index


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Opaque identifier for a new record."""
    return str(uuid.uuid4())


def _format_clock(value: time) -> str:
    if value.second or value.microsecond:
        return value.isoformat()
    return value.strftime("%H:%M")


def _require_naive(value: time) -> time:
    if value.tzinfo is not None:
        raise ValueError("time must not carry a UTC offset")
    return value


# Wall-clock time rendered as "HH:MM" on the wire.
ClockTime = Annotated[
    time,
    AfterValidator(_require_naive),
    PlainSerializer(_format_clock, return_type=str, when_used="json"),
]


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


ACTIVE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})


class LeaveStatus(str, Enum):
    """Leave request statuses."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ActorRole(str, Enum):
    """Who is performing an action."""

    DOCTOR = "DOCTOR"
    PATIENT = "PATIENT"
    ADMIN = "ADMIN"


class DoctorStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class Actor(CamelModel):
    """The caller on whose behalf an operation runs."""

    role: ActorRole
    id: Optional[str] = None


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------

class Doctor(CamelModel):
    id: str
    first_name: str
    last_name: str
    gender: Gender = Gender.OTHER
    email: str
    phone: str = ""
    registration_number: str
    qualifications: list[str] = []
    biography: str = ""
    status: DoctorStatus = DoctorStatus.ACTIVE
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Patient(CamelModel):
    id: str
    first_name: str
    last_name: str
    gender: Gender = Gender.OTHER
    email: str
    phone: str = ""
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    medical_history: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Weekly availability
# ---------------------------------------------------------------------------

class DaySchedule(CamelModel):
    """Working hours for one weekday (0=Sunday..6=Saturday)."""

    day_of_week: int = Field(ge=0, le=6)
    is_available: bool = False
    start_time: ClockTime = time(9, 0)
    end_time: ClockTime = time(17, 0)
    slot_duration_minutes: int = 30

    @model_validator(mode="after")
    def _check_window(self) -> "DaySchedule":
        if self.is_available:
            if self.start_time >= self.end_time:
                raise ValueError("start_time must be before end_time")
            if self.slot_duration_minutes <= 0:
                raise ValueError("slot_duration_minutes must be positive")
        return self


class WeeklyScheduleTemplate(CamelModel):
    """A doctor's recurring week, authoritative over its effective range."""

    id: str
    doctor_id: str
    effective_from: date
    effective_to: Optional[date] = None
    day_schedules: list[DaySchedule] = []
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def covers(self, day: date) -> bool:
        if day < self.effective_from:
            return False
        return self.effective_to is None or day <= self.effective_to

    def day_schedule_for(self, day: date) -> Optional[DaySchedule]:
        wd = weekday_index(day)
        return next((d for d in self.day_schedules if d.day_of_week == wd), None)


class TimeSlot(CamelModel):
    """A single bookable window on one date."""

    start_time: ClockTime
    end_time: ClockTime
    is_available: bool = True


# ---------------------------------------------------------------------------
# Leaves
# ---------------------------------------------------------------------------

class Leave(CamelModel):
    """A doctor's absence over an inclusive date range."""

    id: str
    doctor_id: str
    start_date: date
    end_date: date
    reason: str = ""
    status: LeaveStatus = LeaveStatus.PENDING
    requested_at: datetime = Field(default_factory=_utcnow)
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


# ---------------------------------------------------------------------------
# Appointments
# ---------------------------------------------------------------------------

class AppointmentCandidate(CamelModel):
    """An appointment that has not been committed to the ledger yet."""

    doctor_id: str
    patient_id: str
    date: date
    start_time: ClockTime
    end_time: ClockTime
    reason: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED

    @model_validator(mode="after")
    def _check_interval(self) -> "AppointmentCandidate":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class Appointment(CamelModel):
    """A committed appointment."""

    id: str
    doctor_id: str
    patient_id: str
    date: date
    start_time: ClockTime
    end_time: ClockTime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def overlaps(self, start: time, end: time) -> bool:
        return overlaps(self.start_time, self.end_time, start, end)


class LeaveDecision(CamelModel):
    """Outcome of approving or rejecting a leave.

    ``warnings`` lists active appointments inside an approved range; they are
    left untouched and need manual handling.
    """

    leave: Leave
    warnings: list[Appointment] = []
