"""SchedulingStore backed by an async SQLAlchemy session."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from enum import Enum
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.models import AppointmentDB, DoctorDB, LeaveDB, PatientDB, WeeklyScheduleDB
from medibook.core.repository import (
    AppointmentRepository,
    AuditRepository,
    DoctorRepository,
    LeaveRepository,
    PatientRepository,
    ScheduleRepository,
)
from medibook.scheduling.models import (
    Appointment,
    AppointmentStatus,
    DaySchedule,
    Doctor,
    Leave,
    LeaveStatus,
    Patient,
    WeeklyScheduleTemplate,
)
from medibook.scheduling.store import SchedulingStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ORM <-> domain conversion
# ---------------------------------------------------------------------------

def _column_values(changes: dict[str, Any]) -> dict[str, Any]:
    """Flatten enums to their stored string values."""
    return {k: v.value if isinstance(v, Enum) else v for k, v in changes.items()}


def _doctor_to_pydantic(row: DoctorDB) -> Doctor:
    return Doctor(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        gender=row.gender,
        email=row.email,
        phone=row.phone or "",
        registration_number=row.registration_number,
        qualifications=list(row.qualifications or []),
        biography=row.biography or "",
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _patient_to_pydantic(row: PatientDB) -> Patient:
    return Patient(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        gender=row.gender,
        email=row.email,
        phone=row.phone or "",
        date_of_birth=row.date_of_birth,
        address=row.address,
        medical_history=row.medical_history,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _template_to_pydantic(row: WeeklyScheduleDB) -> WeeklyScheduleTemplate:
    return WeeklyScheduleTemplate(
        id=row.id,
        doctor_id=row.doctor_id,
        effective_from=row.effective_from,
        effective_to=row.effective_to,
        day_schedules=[
            DaySchedule(
                day_of_week=d.day_of_week,
                is_available=d.is_available,
                start_time=d.start_time,
                end_time=d.end_time,
                slot_duration_minutes=d.slot_duration_minutes,
            )
            for d in sorted(row.day_schedules, key=lambda d: d.day_of_week)
        ],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _leave_to_pydantic(row: LeaveDB) -> Leave:
    return Leave(
        id=row.id,
        doctor_id=row.doctor_id,
        start_date=row.start_date,
        end_date=row.end_date,
        reason=row.reason or "",
        status=row.status,
        requested_at=row.requested_at,
        approved_by=row.approved_by,
        approved_at=row.approved_at,
        rejection_reason=row.rejection_reason,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _appt_to_pydantic(row: AppointmentDB) -> Appointment:
    return Appointment(
        id=row.id,
        doctor_id=row.doctor_id,
        patient_id=row.patient_id,
        date=row.appointment_date,
        start_time=row.start_time,
        end_time=row.end_time,
        status=row.status,
        reason=row.reason,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _appt_columns(changes: dict[str, Any]) -> dict[str, Any]:
    values = _column_values(changes)
    if "date" in values:
        values["appointment_date"] = values.pop("date")
    return values


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class SqlSchedulingStore(SchedulingStore):
    """Request-scoped store over one ``AsyncSession``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.doctors = DoctorRepository(session)
        self.patients = PatientRepository(session)
        self.schedules = ScheduleRepository(session)
        self.leaves = LeaveRepository(session)
        self.appointments = AppointmentRepository(session)
        self.audit = AuditRepository(session)

    # -- directory --------------------------------------------------------

    async def add_doctor(self, doctor: Doctor) -> Doctor:
        row = await self.doctors.create(**_column_values(doctor.model_dump()))
        return _doctor_to_pydantic(row)

    async def get_doctor(self, doctor_id: str) -> Optional[Doctor]:
        row = await self.doctors.get_by_id(doctor_id)
        return _doctor_to_pydantic(row) if row else None

    async def find_doctor_by_registration(self, registration_number: str) -> Optional[Doctor]:
        row = await self.doctors.get_by_registration(registration_number)
        return _doctor_to_pydantic(row) if row else None

    async def list_doctors(self) -> list[Doctor]:
        return [_doctor_to_pydantic(r) for r in await self.doctors.list()]

    async def update_doctor(self, doctor_id: str, changes: dict[str, Any]) -> Optional[Doctor]:
        row = await self.doctors.update(doctor_id, **_column_values(changes))
        return _doctor_to_pydantic(row) if row else None

    async def add_patient(self, patient: Patient) -> Patient:
        row = await self.patients.create(**_column_values(patient.model_dump()))
        return _patient_to_pydantic(row)

    async def get_patient(self, patient_id: str) -> Optional[Patient]:
        row = await self.patients.get_by_id(patient_id)
        return _patient_to_pydantic(row) if row else None

    async def list_patients(self) -> list[Patient]:
        return [_patient_to_pydantic(r) for r in await self.patients.list()]

    async def update_patient(self, patient_id: str, changes: dict[str, Any]) -> Optional[Patient]:
        row = await self.patients.update(patient_id, **_column_values(changes))
        return _patient_to_pydantic(row) if row else None

    # -- weekly templates -------------------------------------------------

    async def add_template(self, template: WeeklyScheduleTemplate) -> WeeklyScheduleTemplate:
        values = template.model_dump()
        days = values.pop("day_schedules")
        row = await self.schedules.create(day_schedules=days, **values)
        return _template_to_pydantic(row)

    async def get_template(self, template_id: str) -> Optional[WeeklyScheduleTemplate]:
        row = await self.schedules.get_by_id(template_id)
        return _template_to_pydantic(row) if row else None

    async def list_templates(self, doctor_id: str) -> list[WeeklyScheduleTemplate]:
        return [_template_to_pydantic(r) for r in await self.schedules.list_by_doctor(doctor_id)]

    async def update_template(
        self, template_id: str, changes: dict[str, Any]
    ) -> Optional[WeeklyScheduleTemplate]:
        changes = dict(changes)
        days = changes.pop("day_schedules", None)
        row = await self.schedules.update(
            template_id,
            day_schedules=[d.model_dump() for d in days] if days is not None else None,
            **changes,
        )
        return _template_to_pydantic(row) if row else None

    # -- leaves -----------------------------------------------------------

    async def add_leave(self, leave: Leave) -> Leave:
        row = await self.leaves.create(**_column_values(leave.model_dump()))
        return _leave_to_pydantic(row)

    async def get_leave(self, leave_id: str) -> Optional[Leave]:
        row = await self.leaves.get_by_id(leave_id)
        return _leave_to_pydantic(row) if row else None

    async def list_leaves(self, doctor_id: str) -> list[Leave]:
        return [_leave_to_pydantic(r) for r in await self.leaves.list_by_doctor(doctor_id)]

    async def update_leave(
        self,
        leave_id: str,
        changes: dict[str, Any],
        expected_status: Optional[LeaveStatus] = None,
    ) -> Optional[Leave]:
        row = await self.leaves.update(
            leave_id,
            expected_status=expected_status.value if expected_status else None,
            **_column_values(changes),
        )
        return _leave_to_pydantic(row) if row else None

    # -- appointments -----------------------------------------------------

    async def add_appointment(self, appointment: Appointment) -> Appointment:
        row = await self.appointments.create(**_appt_columns(appointment.model_dump()))
        return _appt_to_pydantic(row)

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        row = await self.appointments.get_by_id(appointment_id)
        return _appt_to_pydantic(row) if row else None

    async def list_appointments(
        self,
        doctor_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        status: Optional[AppointmentStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Appointment]:
        rows = await self.appointments.list(
            doctor_id=doctor_id,
            patient_id=patient_id,
            status=status.value if status else None,
            start_date=start_date,
            end_date=end_date,
        )
        return [_appt_to_pydantic(r) for r in rows]

    async def update_appointment(
        self,
        appointment_id: str,
        changes: dict[str, Any],
        expected_status: Optional[AppointmentStatus] = None,
    ) -> Optional[Appointment]:
        row = await self.appointments.update(
            appointment_id,
            expected_status=expected_status.value if expected_status else None,
            **_appt_columns(changes),
        )
        return _appt_to_pydantic(row) if row else None

    # -- transactions -----------------------------------------------------

    @asynccontextmanager
    async def booking_guard(self, doctor_id: str, day: date) -> AsyncIterator[None]:
        """Serialize booking commits across processes on PostgreSQL.

        The advisory lock is transaction-scoped and released by the commit
        the ledger issues before leaving the guard.
        """
        if self.session.get_bind().dialect.name == "postgresql":
            await self.session.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": f"booking:{doctor_id}:{day.isoformat()}"},
            )
        yield

    async def commit(self) -> None:
        await self.session.commit()

    async def record_audit(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        actor_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        await self.audit.log_action(
            action, resource_type, resource_id, user_id=actor_id, details=details
        )
