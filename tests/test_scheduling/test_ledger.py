"""Tests for the appointment ledger."""

import asyncio
from datetime import time

import pytest

from medibook.scheduling import (
    AppointmentCandidate,
    AppointmentStatus,
    ConflictError,
    InMemorySchedulingStore,
    InvalidInputError,
    InvalidTransitionError,
    KeyedLock,
    NotFoundError,
)
from medibook.scheduling.ledger import AppointmentLedger, can_transition
from tests.conftest import TUESDAY


def _candidate(start=time(9, 0), end=time(9, 30), patient_id="pat-1", **extra) -> AppointmentCandidate:
    return AppointmentCandidate(
        doctor_id="doc-1",
        patient_id=patient_id,
        date=TUESDAY,
        start_time=start,
        end_time=end,
        **extra,
    )


@pytest.fixture
def ledger(store, locks):
    return AppointmentLedger(store, locks)


class TestCommit:
    async def test_commit_creates_scheduled(self, ledger, store):
        appt = await ledger.commit_appointment(_candidate())
        assert appt.status == AppointmentStatus.SCHEDULED
        assert (await store.get_appointment(appt.id)) == appt
        assert store.audit_log[-1]["action"] == "appointment.create"

    async def test_overlap_raises_conflict(self, ledger):
        first = await ledger.commit_appointment(_candidate())
        with pytest.raises(ConflictError) as exc_info:
            await ledger.commit_appointment(_candidate(time(9, 15), time(9, 45), patient_id="pat-2"))
        assert exc_info.value.conflicting_ids == [first.id]

    async def test_adjacent_interval_allowed(self, ledger):
        await ledger.commit_appointment(_candidate())
        second = await ledger.commit_appointment(_candidate(time(9, 30), time(10, 0)))
        assert second.start_time == time(9, 30)

    async def test_cancelled_booking_frees_interval(self, ledger):
        first = await ledger.commit_appointment(_candidate())
        await ledger.cancel(first.id)
        again = await ledger.commit_appointment(_candidate(patient_id="pat-2"))
        assert again.id != first.id

    async def test_terminal_candidate_rejected(self, ledger):
        with pytest.raises(InvalidInputError):
            await ledger.commit_appointment(_candidate(status=AppointmentStatus.COMPLETED))

    async def test_concurrent_commits_only_one_wins(self):
        class YieldingStore(InMemorySchedulingStore):
            async def list_appointments(self, **filters):
                await asyncio.sleep(0)
                return await super().list_appointments(**filters)

        store = YieldingStore()
        ledger = AppointmentLedger(store, KeyedLock())
        results = await asyncio.gather(
            ledger.commit_appointment(_candidate(patient_id="pat-1")),
            ledger.commit_appointment(_candidate(patient_id="pat-2")),
            return_exceptions=True,
        )
        assert sum(isinstance(r, ConflictError) for r in results) == 1
        assert len(await store.list_appointments(doctor_id="doc-1")) == 1

    async def test_lock_entries_released(self, ledger, locks):
        await ledger.commit_appointment(_candidate())
        assert len(locks) == 0


class TestStatusTransitions:
    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED, True),
            (AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED, False),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED, True),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.SCHEDULED, False),
            (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, False),
            (AppointmentStatus.NO_SHOW, AppointmentStatus.CONFIRMED, False),
        ],
    )
    def test_graph(self, current, target, allowed):
        assert can_transition(current, target) is allowed

    async def test_confirm_then_complete(self, ledger):
        appt = await ledger.commit_appointment(_candidate())
        confirmed = await ledger.update_status(appt.id, AppointmentStatus.CONFIRMED)
        assert confirmed.status == AppointmentStatus.CONFIRMED
        completed = await ledger.update_status(appt.id, "COMPLETED")
        assert completed.status == AppointmentStatus.COMPLETED

    @pytest.mark.parametrize("target", list(AppointmentStatus))
    async def test_cancelled_rejects_everything(self, ledger, target):
        appt = await ledger.commit_appointment(_candidate())
        await ledger.cancel(appt.id)
        with pytest.raises(InvalidTransitionError):
            await ledger.update_status(appt.id, target)

    async def test_unknown_status_rejected(self, ledger):
        appt = await ledger.commit_appointment(_candidate())
        with pytest.raises(InvalidInputError):
            await ledger.update_status(appt.id, "RESCHEDULED")

    async def test_missing_appointment(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.update_status("nope", AppointmentStatus.CONFIRMED)

    async def test_stale_status_loses_race(self, ledger, store):
        appt = await ledger.commit_appointment(_candidate())
        # Someone else cancels between our read and our write.
        await store.update_appointment(appt.id, {"status": AppointmentStatus.CANCELLED})
        updated = await store.update_appointment(
            appt.id,
            {"status": AppointmentStatus.CONFIRMED},
            expected_status=AppointmentStatus.SCHEDULED,
        )
        assert updated is None
        assert (await ledger.get(appt.id)).status == AppointmentStatus.CANCELLED

    async def test_concurrent_transitions_one_wins(self, ledger):
        appt = await ledger.commit_appointment(_candidate())
        results = await asyncio.gather(
            ledger.update_status(appt.id, AppointmentStatus.CANCELLED),
            ledger.update_status(appt.id, AppointmentStatus.CANCELLED),
            return_exceptions=True,
        )
        assert sum(isinstance(r, InvalidTransitionError) for r in results) == 1


class TestQueries:
    async def test_update_notes(self, ledger):
        appt = await ledger.commit_appointment(_candidate())
        updated = await ledger.update_notes(appt.id, "Bring prior reports")
        assert updated.notes == "Bring prior reports"
        assert updated.status == AppointmentStatus.SCHEDULED

    async def test_list_filters(self, ledger):
        a = await ledger.commit_appointment(_candidate())
        b = await ledger.commit_appointment(_candidate(time(10, 0), time(10, 30), patient_id="pat-2"))
        await ledger.cancel(b.id)

        assert [x.id for x in await ledger.list_for_doctor("doc-1", day="2024-01-02")] == [a.id, b.id]
        assert [x.id for x in await ledger.list_for_patient("pat-2")] == [b.id]
        scheduled = await ledger.list_all(status=AppointmentStatus.SCHEDULED)
        assert [x.id for x in scheduled] == [a.id]

    async def test_list_all_rejects_inverted_range(self, ledger):
        with pytest.raises(InvalidInputError):
            await ledger.list_all(start_date="2024-02-01", end_date="2024-01-01")
