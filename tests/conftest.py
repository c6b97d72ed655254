"""Pytest configuration and fixtures."""

from datetime import date, time

import pytest
import pytest_asyncio

from medibook.scheduling import (
    Actor,
    ActorRole,
    DaySchedule,
    InMemorySchedulingStore,
    KeyedLock,
    SchedulingService,
)

# 2024-01-02 is a Tuesday.
TUESDAY = date(2024, 1, 2)
SUNDAY = date(2024, 1, 7)


def weekday_schedules(
    start: time = time(9, 0),
    end: time = time(17, 0),
    minutes: int = 30,
) -> list[DaySchedule]:
    """Monday to Friday working week; weekends off."""
    return [
        DaySchedule(
            day_of_week=day,
            is_available=1 <= day <= 5,
            start_time=start,
            end_time=end,
            slot_duration_minutes=minutes,
        )
        for day in range(7)
    ]


@pytest.fixture
def store():
    return InMemorySchedulingStore()


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
def service(store, locks):
    return SchedulingService(store, locks)


@pytest_asyncio.fixture
async def doctor(service):
    return await service.directory.register_doctor(
        first_name="Asha",
        last_name="Rao",
        email="asha.rao@example.com",
        registration_number="REG-1001",
        qualifications=["MBBS", "MD"],
    )


@pytest_asyncio.fixture
async def patient(service):
    return await service.directory.register_patient(
        first_name="Sam",
        last_name="Lee",
        email="sam.lee@example.com",
        date_of_birth=date(1988, 3, 14),
    )


@pytest_asyncio.fixture
async def template(service, doctor):
    return await service.schedules.create_template(
        doctor.id,
        effective_from=date(2024, 1, 1),
        effective_to=None,
        day_schedules=weekday_schedules(),
    )


@pytest.fixture
def admin():
    return Actor(role=ActorRole.ADMIN, id="admin-1")


@pytest.fixture
def doctor_actor(doctor):
    return Actor(role=ActorRole.DOCTOR, id=doctor.id)


@pytest.fixture
def patient_actor(patient):
    return Actor(role=ActorRole.PATIENT, id=patient.id)


# ---------------------------------------------------------------------------
# API clients
# ---------------------------------------------------------------------------

def build_app(store=None, **settings):
    """MediBook app without startup side effects, optionally bound to *store*."""
    from medibook.api.app import create_app
    from medibook.api.dependencies import get_store
    from medibook.config import Settings

    app = create_app(Settings(_env_file=None, **settings))
    if store is not None:
        app.dependency_overrides[get_store] = lambda: store
    return app


@pytest_asyncio.fixture
async def api_client(store):
    """AsyncClient over the in-memory store shared with the ``service`` fixture."""
    from httpx import ASGITransport, AsyncClient

    transport = ASGITransport(app=build_app(store))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def actor_headers(actor: Actor) -> dict[str, str]:
    return {"X-Actor-Role": actor.role.value, "X-Actor-Id": actor.id or ""}
