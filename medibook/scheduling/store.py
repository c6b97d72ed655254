"""Storage interface for the engine, plus the in-memory demo implementation."""

import logging
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Optional, TypeVar

from pydantic import BaseModel

from medibook.scheduling.models import (
    Appointment,
    AppointmentStatus,
    Doctor,
    Leave,
    LeaveStatus,
    Patient,
    WeeklyScheduleTemplate,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class SchedulingStore(ABC):
    """Everything the engine reads and writes goes through this interface.

    ``update_*`` methods that accept ``expected_status`` are compare-and-swap
    writes: they return ``None`` unless the record exists *and* currently has
    that status.
    """

    # -- directory --------------------------------------------------------

    @abstractmethod
    async def add_doctor(self, doctor: Doctor) -> Doctor: ...

    @abstractmethod
    async def get_doctor(self, doctor_id: str) -> Optional[Doctor]: ...

    @abstractmethod
    async def find_doctor_by_registration(self, registration_number: str) -> Optional[Doctor]: ...

    @abstractmethod
    async def list_doctors(self) -> list[Doctor]: ...

    @abstractmethod
    async def update_doctor(self, doctor_id: str, changes: dict[str, Any]) -> Optional[Doctor]: ...

    @abstractmethod
    async def add_patient(self, patient: Patient) -> Patient: ...

    @abstractmethod
    async def get_patient(self, patient_id: str) -> Optional[Patient]: ...

    @abstractmethod
    async def list_patients(self) -> list[Patient]: ...

    @abstractmethod
    async def update_patient(self, patient_id: str, changes: dict[str, Any]) -> Optional[Patient]: ...

    # -- weekly templates -------------------------------------------------

    @abstractmethod
    async def add_template(self, template: WeeklyScheduleTemplate) -> WeeklyScheduleTemplate: ...

    @abstractmethod
    async def get_template(self, template_id: str) -> Optional[WeeklyScheduleTemplate]: ...

    @abstractmethod
    async def list_templates(self, doctor_id: str) -> list[WeeklyScheduleTemplate]:
        """All templates of a doctor ordered by ``effective_from``."""

    @abstractmethod
    async def update_template(
        self, template_id: str, changes: dict[str, Any]
    ) -> Optional[WeeklyScheduleTemplate]: ...

    # -- leaves -----------------------------------------------------------

    @abstractmethod
    async def add_leave(self, leave: Leave) -> Leave: ...

    @abstractmethod
    async def get_leave(self, leave_id: str) -> Optional[Leave]: ...

    @abstractmethod
    async def list_leaves(self, doctor_id: str) -> list[Leave]:
        """All leaves of a doctor ordered by ``start_date``."""

    @abstractmethod
    async def update_leave(
        self,
        leave_id: str,
        changes: dict[str, Any],
        expected_status: Optional[LeaveStatus] = None,
    ) -> Optional[Leave]: ...

    # -- appointments -----------------------------------------------------

    @abstractmethod
    async def add_appointment(self, appointment: Appointment) -> Appointment: ...

    @abstractmethod
    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]: ...

    @abstractmethod
    async def list_appointments(
        self,
        doctor_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        status: Optional[AppointmentStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Appointment]:
        """Appointments matching every given filter, ordered by date then start."""

    @abstractmethod
    async def update_appointment(
        self,
        appointment_id: str,
        changes: dict[str, Any],
        expected_status: Optional[AppointmentStatus] = None,
    ) -> Optional[Appointment]: ...

    # -- transactions -----------------------------------------------------

    @abstractmethod
    def booking_guard(self, doctor_id: str, day: date) -> AbstractAsyncContextManager[None]:
        """Storage-level exclusion for committing bookings of one doctor-day."""

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def record_audit(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        actor_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None: ...


class InMemorySchedulingStore(SchedulingStore):
    """Volatile store for the offline demo mode and for tests.

    Every read returns a copy so callers can never mutate stored records.
    """

    def __init__(self) -> None:
        self._doctors: dict[str, Doctor] = {}
        self._patients: dict[str, Patient] = {}
        self._templates: dict[str, WeeklyScheduleTemplate] = {}
        self._leaves: dict[str, Leave] = {}
        self._appointments: dict[str, Appointment] = {}
        self.audit_log: list[dict[str, Any]] = []

    @staticmethod
    def _copy(model: Optional[M]) -> Optional[M]:
        return model.model_copy(deep=True) if model is not None else None

    @staticmethod
    def _apply(model: M, changes: dict[str, Any]) -> M:
        changes = {**changes, "updated_at": datetime.now(timezone.utc)}
        return model.model_copy(update=changes, deep=True)

    # -- directory --------------------------------------------------------

    async def add_doctor(self, doctor: Doctor) -> Doctor:
        self._doctors[doctor.id] = self._copy(doctor)
        return doctor

    async def get_doctor(self, doctor_id: str) -> Optional[Doctor]:
        return self._copy(self._doctors.get(doctor_id))

    async def find_doctor_by_registration(self, registration_number: str) -> Optional[Doctor]:
        match = next(
            (d for d in self._doctors.values() if d.registration_number == registration_number),
            None,
        )
        return self._copy(match)

    async def list_doctors(self) -> list[Doctor]:
        doctors = sorted(self._doctors.values(), key=lambda d: (d.last_name, d.first_name))
        return [self._copy(d) for d in doctors]

    async def update_doctor(self, doctor_id: str, changes: dict[str, Any]) -> Optional[Doctor]:
        doctor = self._doctors.get(doctor_id)
        if doctor is None:
            return None
        self._doctors[doctor_id] = self._apply(doctor, changes)
        return self._copy(self._doctors[doctor_id])

    async def add_patient(self, patient: Patient) -> Patient:
        self._patients[patient.id] = self._copy(patient)
        return patient

    async def get_patient(self, patient_id: str) -> Optional[Patient]:
        return self._copy(self._patients.get(patient_id))

    async def list_patients(self) -> list[Patient]:
        patients = sorted(self._patients.values(), key=lambda p: (p.last_name, p.first_name))
        return [self._copy(p) for p in patients]

    async def update_patient(self, patient_id: str, changes: dict[str, Any]) -> Optional[Patient]:
        patient = self._patients.get(patient_id)
        if patient is None:
            return None
        self._patients[patient_id] = self._apply(patient, changes)
        return self._copy(self._patients[patient_id])

    # -- weekly templates -------------------------------------------------

    async def add_template(self, template: WeeklyScheduleTemplate) -> WeeklyScheduleTemplate:
        self._templates[template.id] = self._copy(template)
        return template

    async def get_template(self, template_id: str) -> Optional[WeeklyScheduleTemplate]:
        return self._copy(self._templates.get(template_id))

    async def list_templates(self, doctor_id: str) -> list[WeeklyScheduleTemplate]:
        templates = [t for t in self._templates.values() if t.doctor_id == doctor_id]
        templates.sort(key=lambda t: t.effective_from)
        return [self._copy(t) for t in templates]

    async def update_template(
        self, template_id: str, changes: dict[str, Any]
    ) -> Optional[WeeklyScheduleTemplate]:
        template = self._templates.get(template_id)
        if template is None:
            return None
        self._templates[template_id] = self._apply(template, changes)
        return self._copy(self._templates[template_id])

    # -- leaves -----------------------------------------------------------

    async def add_leave(self, leave: Leave) -> Leave:
        self._leaves[leave.id] = self._copy(leave)
        return leave

    async def get_leave(self, leave_id: str) -> Optional[Leave]:
        return self._copy(self._leaves.get(leave_id))

    async def list_leaves(self, doctor_id: str) -> list[Leave]:
        leaves = [lv for lv in self._leaves.values() if lv.doctor_id == doctor_id]
        leaves.sort(key=lambda lv: lv.start_date)
        return [self._copy(lv) for lv in leaves]

    async def update_leave(
        self,
        leave_id: str,
        changes: dict[str, Any],
        expected_status: Optional[LeaveStatus] = None,
    ) -> Optional[Leave]:
        leave = self._leaves.get(leave_id)
        if leave is None:
            return None
        if expected_status is not None and leave.status != expected_status:
            return None
        self._leaves[leave_id] = self._apply(leave, changes)
        return self._copy(self._leaves[leave_id])

    # -- appointments -----------------------------------------------------

    async def add_appointment(self, appointment: Appointment) -> Appointment:
        self._appointments[appointment.id] = self._copy(appointment)
        return appointment

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._copy(self._appointments.get(appointment_id))

    async def list_appointments(
        self,
        doctor_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        status: Optional[AppointmentStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Appointment]:
        matches = [
            a for a in self._appointments.values()
            if (doctor_id is None or a.doctor_id == doctor_id)
            and (patient_id is None or a.patient_id == patient_id)
            and (status is None or a.status == status)
            and (start_date is None or a.date >= start_date)
            and (end_date is None or a.date <= end_date)
        ]
        matches.sort(key=lambda a: (a.date, a.start_time))
        return [self._copy(a) for a in matches]

    async def update_appointment(
        self,
        appointment_id: str,
        changes: dict[str, Any],
        expected_status: Optional[AppointmentStatus] = None,
    ) -> Optional[Appointment]:
        appointment = self._appointments.get(appointment_id)
        if appointment is None:
            return None
        if expected_status is not None and appointment.status != expected_status:
            return None
        self._appointments[appointment_id] = self._apply(appointment, changes)
        return self._copy(self._appointments[appointment_id])

    # -- transactions -----------------------------------------------------

    @asynccontextmanager
    async def booking_guard(self, doctor_id: str, day: date) -> AsyncIterator[None]:
        # Single event loop, no other writers: the ledger's keyed lock suffices.
        yield

    async def commit(self) -> None:
        return None

    async def record_audit(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        actor_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        self.audit_log.append({
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "user_id": actor_id,
            "details": details,
            "timestamp": datetime.now(timezone.utc),
        })
