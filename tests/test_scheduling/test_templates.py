"""Tests for weekly schedule templates."""

from datetime import date, time

import pytest

from medibook.scheduling import InvalidInputError, NotFoundError, ScheduleOverlapError
from medibook.scheduling.templates import normalize_day_schedules
from tests.conftest import TUESDAY, weekday_schedules


class TestNormalize:
    def test_missing_days_filled_unavailable(self):
        days = normalize_day_schedules([
            {"dayOfWeek": 2, "isAvailable": True, "startTime": "10:00", "endTime": "12:00"},
        ])
        assert [d.day_of_week for d in days] == list(range(7))
        assert [d.is_available for d in days] == [False, False, True, False, False, False, False]
        assert days[2].start_time == time(10, 0)

    def test_duplicate_weekday_rejected(self):
        with pytest.raises(InvalidInputError):
            normalize_day_schedules([{"dayOfWeek": 1}, {"dayOfWeek": 1}])

    def test_inverted_window_rejected(self):
        with pytest.raises(InvalidInputError):
            normalize_day_schedules([
                {"dayOfWeek": 1, "isAvailable": True, "startTime": "17:00", "endTime": "09:00"},
            ])

    def test_weekday_out_of_range_rejected(self):
        with pytest.raises(InvalidInputError):
            normalize_day_schedules([{"dayOfWeek": 7}])


class TestScheduleManager:
    async def test_create_and_get(self, service, template):
        fetched = await service.schedules.get_template(template.id)
        assert fetched.effective_to is None
        assert len(fetched.day_schedules) == 7

    async def test_unknown_doctor(self, service):
        with pytest.raises(NotFoundError):
            await service.schedules.create_template("ghost", date(2024, 1, 1))

    async def test_inverted_range_rejected(self, service, doctor):
        with pytest.raises(InvalidInputError):
            await service.schedules.create_template(doctor.id, "2024-02-01", "2024-01-01")

    async def test_overlap_with_open_ended_rejected(self, service, doctor, template):
        with pytest.raises(ScheduleOverlapError):
            await service.schedules.create_template(
                doctor.id, date(2030, 1, 1), None, weekday_schedules()
            )

    async def test_adjacent_ranges_allowed(self, service, doctor):
        first = await service.schedules.create_template(
            doctor.id, "2024-01-01", "2024-01-31", weekday_schedules()
        )
        second = await service.schedules.create_template(
            doctor.id, "2024-02-01", None, weekday_schedules(minutes=15)
        )
        listed = await service.schedules.list_templates(doctor.id)
        assert [t.id for t in listed] == [first.id, second.id]

        january = await service.deriver.get_available_slots(doctor.id, TUESDAY)
        february = await service.deriver.get_available_slots(doctor.id, date(2024, 2, 6))
        assert len(january) == 16
        assert len(february) == 32

    async def test_other_doctor_not_an_overlap(self, service, template):
        other = await service.directory.register_doctor(
            first_name="Lin", last_name="Ko", email="lin@example.com", registration_number="REG-2"
        )
        created = await service.schedules.create_template(other.id, date(2024, 1, 1))
        assert created.doctor_id == other.id

    async def test_close_template_and_open_new(self, service, doctor, template):
        closed = await service.schedules.update_template(template.id, effective_to="2024-01-31")
        assert closed.effective_to == date(2024, 1, 31)
        successor = await service.schedules.create_template(doctor.id, "2024-02-01")
        assert successor.effective_from == date(2024, 2, 1)

    async def test_update_keeps_end_unless_given(self, service, doctor):
        created = await service.schedules.create_template(
            doctor.id, "2024-01-01", "2024-06-30", weekday_schedules()
        )
        moved = await service.schedules.update_template(created.id, effective_from="2024-01-15")
        assert moved.effective_to == date(2024, 6, 30)

        reopened = await service.schedules.update_template(created.id, effective_to=None)
        assert reopened.effective_to is None

    async def test_update_replaces_week(self, service, doctor, template):
        updated = await service.schedules.update_template(
            template.id,
            day_schedules=[{"dayOfWeek": 2, "isAvailable": True, "startTime": "09:00", "endTime": "10:00"}],
        )
        assert [d.is_available for d in updated.day_schedules].count(True) == 1
        slots = await service.deriver.get_available_slots(doctor.id, TUESDAY)
        assert len(slots) == 2

    async def test_update_into_overlap_rejected(self, service, doctor):
        await service.schedules.create_template(doctor.id, "2024-01-01", "2024-01-31")
        later = await service.schedules.create_template(doctor.id, "2024-03-01", "2024-03-31")
        with pytest.raises(ScheduleOverlapError):
            await service.schedules.update_template(later.id, effective_from="2024-01-15")

    async def test_list_by_range(self, service, doctor):
        jan = await service.schedules.create_template(doctor.id, "2024-01-01", "2024-01-31")
        await service.schedules.create_template(doctor.id, "2024-03-01", None)
        found = await service.schedules.list_templates(doctor.id, "2024-01-15", "2024-02-15")
        assert [t.id for t in found] == [jan.id]
