"""Tests for scheduling repositories using async SQLite."""

from __future__ import annotations

from datetime import date, time

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from medibook.core.models import Base
from medibook.core.repository import (
    AppointmentRepository,
    AuditRepository,
    DoctorRepository,
    LeaveRepository,
    PatientRepository,
    ScheduleRepository,
)


@pytest.fixture
async def session():
    engine = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as sess:
        yield sess
        await sess.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def doctor_id(session: AsyncSession) -> str:
    doc = await DoctorRepository(session).create(
        first_name="Asha", last_name="Rao", email="asha@example.com", registration_number="REG-1"
    )
    return doc.id


@pytest.fixture
async def patient_id(session: AsyncSession) -> str:
    pat = await PatientRepository(session).create(
        first_name="Sam", last_name="Lee", email="sam@example.com"
    )
    return pat.id


def _week(start=time(9, 0), end=time(17, 0)) -> list[dict]:
    return [
        {
            "day_of_week": d,
            "is_available": 1 <= d <= 5,
            "start_time": start,
            "end_time": end,
            "slot_duration_minutes": 30,
        }
        for d in range(7)
    ]


# --- Doctor / Patient ---

async def test_doctor_create_and_lookup(session: AsyncSession, doctor_id: str):
    repo = DoctorRepository(session)
    fetched = await repo.get_by_id(doctor_id)
    assert fetched is not None
    assert fetched.status == "ACTIVE"

    by_reg = await repo.get_by_registration("REG-1")
    assert by_reg is not None and by_reg.id == doctor_id
    assert await repo.get_by_registration("REG-404") is None


async def test_doctor_update(session: AsyncSession, doctor_id: str):
    updated = await DoctorRepository(session).update(doctor_id, biography="Cardiology")
    assert updated is not None
    assert updated.biography == "Cardiology"
    assert await DoctorRepository(session).update("missing", biography="x") is None


async def test_patient_update(session: AsyncSession, patient_id: str):
    updated = await PatientRepository(session).update(patient_id, phone="555-1234")
    assert updated is not None
    assert updated.phone == "555-1234"


# --- Weekly schedules ---

async def test_schedule_create_with_days(session: AsyncSession, doctor_id: str):
    repo = ScheduleRepository(session)
    sched = await repo.create(_week(), doctor_id=doctor_id, effective_from=date(2024, 1, 1))
    fetched = await repo.get_by_id(sched.id)
    assert fetched is not None
    assert [d.day_of_week for d in fetched.day_schedules] == list(range(7))
    assert fetched.effective_to is None


async def test_schedule_update_upserts_days(session: AsyncSession, doctor_id: str):
    repo = ScheduleRepository(session)
    sched = await repo.create(_week(), doctor_id=doctor_id, effective_from=date(2024, 1, 1))
    day_ids = {d.day_of_week: d.id for d in sched.day_schedules}

    updated = await repo.update(
        sched.id,
        day_schedules=_week(start=time(8, 0)),
        effective_to=date(2024, 12, 31),
    )
    assert updated.effective_to == date(2024, 12, 31)
    assert {d.day_of_week: d.id for d in updated.day_schedules} == day_ids
    assert all(d.start_time == time(8, 0) for d in updated.day_schedules)


async def test_schedule_list_ordered(session: AsyncSession, doctor_id: str):
    repo = ScheduleRepository(session)
    later = await repo.create(_week(), doctor_id=doctor_id, effective_from=date(2024, 6, 1))
    earlier = await repo.create(
        _week(), doctor_id=doctor_id, effective_from=date(2024, 1, 1), effective_to=date(2024, 5, 31)
    )
    listed = await repo.list_by_doctor(doctor_id)
    assert [s.id for s in listed] == [earlier.id, later.id]


# --- Leaves ---

async def test_leave_conditional_update(session: AsyncSession, doctor_id: str):
    repo = LeaveRepository(session)
    leave = await repo.create(
        doctor_id=doctor_id, start_date=date(2024, 1, 2), end_date=date(2024, 1, 3)
    )
    assert leave.status == "PENDING"

    approved = await repo.update(leave.id, expected_status="PENDING", status="APPROVED", approved_by="admin")
    assert approved is not None
    assert approved.status == "APPROVED"

    again = await repo.update(leave.id, expected_status="PENDING", status="REJECTED")
    assert again is None
    assert (await repo.get_by_id(leave.id)).status == "APPROVED"


# --- Appointments ---

async def test_appointment_list_filters(session: AsyncSession, doctor_id: str, patient_id: str):
    repo = AppointmentRepository(session)
    late = await repo.create(
        doctor_id=doctor_id, patient_id=patient_id, appointment_date=date(2024, 1, 2),
        start_time=time(11, 0), end_time=time(11, 30),
    )
    early = await repo.create(
        doctor_id=doctor_id, patient_id=patient_id, appointment_date=date(2024, 1, 2),
        start_time=time(9, 0), end_time=time(9, 30),
    )
    await repo.create(
        doctor_id=doctor_id, patient_id=patient_id, appointment_date=date(2024, 1, 3),
        start_time=time(9, 0), end_time=time(9, 30), status="CANCELLED",
    )

    same_day = await repo.list(doctor_id=doctor_id, start_date=date(2024, 1, 2), end_date=date(2024, 1, 2))
    assert [a.id for a in same_day] == [early.id, late.id]

    cancelled = await repo.list(patient_id=patient_id, status="CANCELLED")
    assert len(cancelled) == 1


async def test_appointment_compare_and_swap(session: AsyncSession, doctor_id: str, patient_id: str):
    repo = AppointmentRepository(session)
    appt = await repo.create(
        doctor_id=doctor_id, patient_id=patient_id, appointment_date=date(2024, 1, 2),
        start_time=time(9, 0), end_time=time(9, 30),
    )
    assert appt.status == "SCHEDULED"

    confirmed = await repo.update(appt.id, expected_status="SCHEDULED", status="CONFIRMED")
    assert confirmed is not None and confirmed.status == "CONFIRMED"

    stale = await repo.update(appt.id, expected_status="SCHEDULED", status="CANCELLED")
    assert stale is None


# --- Audit ---

async def test_audit_log(session: AsyncSession, doctor_id: str):
    repo = AuditRepository(session)
    await repo.log_action("doctor.create", "doctor", doctor_id, details={"source": "test"})
    entries = await repo.get_by_resource("doctor", doctor_id)
    assert len(entries) == 1
    assert entries[0].details == {"source": "test"}
