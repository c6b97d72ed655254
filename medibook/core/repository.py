"""CRUD repositories for the scheduling schema."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select, update as sql_update
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.models import (
    AppointmentDB,
    AuditLog,
    DayScheduleDB,
    DoctorDB,
    LeaveDB,
    PatientDB,
    WeeklyScheduleDB,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DoctorRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> DoctorDB:
        doctor = DoctorDB(**kwargs)
        self.session.add(doctor)
        await self.session.flush()
        return doctor

    async def get_by_id(self, doctor_id: str) -> Optional[DoctorDB]:
        return await self.session.get(DoctorDB, doctor_id)

    async def get_by_registration(self, registration_number: str) -> Optional[DoctorDB]:
        stmt = select(DoctorDB).where(DoctorDB.registration_number == registration_number)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list(self, offset: int = 0, limit: int = 200) -> Sequence[DoctorDB]:
        stmt = select(DoctorDB).order_by(DoctorDB.last_name, DoctorDB.first_name).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def update(self, doctor_id: str, **kwargs) -> Optional[DoctorDB]:
        doctor = await self.get_by_id(doctor_id)
        if not doctor:
            return None
        for k, v in kwargs.items():
            setattr(doctor, k, v)
        doctor.updated_at = _utcnow()
        await self.session.flush()
        return doctor


class PatientRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> PatientDB:
        patient = PatientDB(**kwargs)
        self.session.add(patient)
        await self.session.flush()
        return patient

    async def get_by_id(self, patient_id: str) -> Optional[PatientDB]:
        return await self.session.get(PatientDB, patient_id)

    async def list(self, offset: int = 0, limit: int = 200) -> Sequence[PatientDB]:
        stmt = select(PatientDB).order_by(PatientDB.last_name, PatientDB.first_name).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def update(self, patient_id: str, **kwargs) -> Optional[PatientDB]:
        patient = await self.get_by_id(patient_id)
        if not patient:
            return None
        for k, v in kwargs.items():
            setattr(patient, k, v)
        patient.updated_at = _utcnow()
        await self.session.flush()
        return patient


class ScheduleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, day_schedules: list[dict], **kwargs) -> WeeklyScheduleDB:
        schedule = WeeklyScheduleDB(
            day_schedules=[DayScheduleDB(**d) for d in day_schedules],
            **kwargs,
        )
        self.session.add(schedule)
        await self.session.flush()
        return schedule

    async def get_by_id(self, schedule_id: str) -> Optional[WeeklyScheduleDB]:
        return await self.session.get(WeeklyScheduleDB, schedule_id)

    async def list_by_doctor(self, doctor_id: str) -> Sequence[WeeklyScheduleDB]:
        stmt = (
            select(WeeklyScheduleDB)
            .where(WeeklyScheduleDB.doctor_id == doctor_id)
            .order_by(WeeklyScheduleDB.effective_from)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def update(
        self,
        schedule_id: str,
        day_schedules: Optional[list[dict]] = None,
        **kwargs,
    ) -> Optional[WeeklyScheduleDB]:
        schedule = await self.get_by_id(schedule_id)
        if not schedule:
            return None
        for k, v in kwargs.items():
            setattr(schedule, k, v)
        if day_schedules is not None:
            self._upsert_days(schedule, day_schedules)
        schedule.updated_at = _utcnow()
        await self.session.flush()
        return schedule

    @staticmethod
    def _upsert_days(schedule: WeeklyScheduleDB, day_schedules: list[dict]) -> None:
        existing = {d.day_of_week: d for d in schedule.day_schedules}
        for values in day_schedules:
            row = existing.get(values["day_of_week"])
            if row is None:
                schedule.day_schedules.append(DayScheduleDB(**values))
                continue
            for k, v in values.items():
                setattr(row, k, v)
            row.updated_at = _utcnow()


class LeaveRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> LeaveDB:
        leave = LeaveDB(**kwargs)
        self.session.add(leave)
        await self.session.flush()
        return leave

    async def get_by_id(self, leave_id: str) -> Optional[LeaveDB]:
        return await self.session.get(LeaveDB, leave_id)

    async def list_by_doctor(self, doctor_id: str) -> Sequence[LeaveDB]:
        stmt = select(LeaveDB).where(LeaveDB.doctor_id == doctor_id).order_by(LeaveDB.start_date)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def update(
        self, leave_id: str, expected_status: Optional[str] = None, **values
    ) -> Optional[LeaveDB]:
        """Conditional UPDATE; returns ``None`` when no row matched."""
        stmt = sql_update(LeaveDB).where(LeaveDB.id == leave_id)
        if expected_status is not None:
            stmt = stmt.where(LeaveDB.status == expected_status)
        values["updated_at"] = _utcnow()
        result = await self.session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return await self.session.get(LeaveDB, leave_id, populate_existing=True)


class AppointmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> AppointmentDB:
        appt = AppointmentDB(**kwargs)
        self.session.add(appt)
        await self.session.flush()
        return appt

    async def get_by_id(self, appointment_id: str) -> Optional[AppointmentDB]:
        return await self.session.get(AppointmentDB, appointment_id)

    async def list(
        self,
        doctor_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Sequence[AppointmentDB]:
        stmt = select(AppointmentDB)
        if doctor_id is not None:
            stmt = stmt.where(AppointmentDB.doctor_id == doctor_id)
        if patient_id is not None:
            stmt = stmt.where(AppointmentDB.patient_id == patient_id)
        if status is not None:
            stmt = stmt.where(AppointmentDB.status == status)
        if start_date is not None:
            stmt = stmt.where(AppointmentDB.appointment_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(AppointmentDB.appointment_date <= end_date)
        stmt = stmt.order_by(AppointmentDB.appointment_date, AppointmentDB.start_time)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def update(
        self, appointment_id: str, expected_status: Optional[str] = None, **values
    ) -> Optional[AppointmentDB]:
        """Conditional UPDATE; returns ``None`` when no row matched."""
        stmt = sql_update(AppointmentDB).where(AppointmentDB.id == appointment_id)
        if expected_status is not None:
            stmt = stmt.where(AppointmentDB.status == expected_status)
        values["updated_at"] = _utcnow()
        result = await self.session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return await self.session.get(AppointmentDB, appointment_id, populate_existing=True)


class AuditRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_action(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id),
            details=details,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_by_resource(self, resource_type: str, resource_id: str, limit: int = 50) -> Sequence[AuditLog]:
        stmt = (
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.timestamp.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
