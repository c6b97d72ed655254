"""Calendar/slot derivation: weekly template + leaves + bookings -> slots."""

import logging
from datetime import date
from typing import Optional

from medibook.scheduling.calendar import iter_slot_bounds, parse_date
from medibook.scheduling.models import (
    Appointment,
    DaySchedule,
    Leave,
    LeaveStatus,
    TimeSlot,
    WeeklyScheduleTemplate,
)
from medibook.scheduling.store import SchedulingStore

logger = logging.getLogger(__name__)


def generate_day_slots(day_schedule: DaySchedule) -> list[TimeSlot]:
    """Generate every slot of one day's working window, all marked available."""
    if not day_schedule.is_available:
        return []
    return [
        TimeSlot(start_time=start, end_time=end)
        for start, end in iter_slot_bounds(
            day_schedule.start_time,
            day_schedule.end_time,
            day_schedule.slot_duration_minutes,
        )
    ]


def derive_slots(
    day: date,
    templates: list[WeeklyScheduleTemplate],
    leaves: list[Leave],
    appointments: list[Appointment],
) -> list[TimeSlot]:
    """Compute the slots of *day* from already-loaded records.

    *templates*, *leaves* and *appointments* must all belong to one doctor.
    Slots are marked unavailable when an approved leave covers the day or an
    active appointment overlaps them.
    """
    template = active_template(templates, day)
    if template is None:
        return []
    day_schedule = template.day_schedule_for(day)
    if day_schedule is None:
        return []

    slots = generate_day_slots(day_schedule)
    if not slots:
        return []

    on_leave = any(lv.status == LeaveStatus.APPROVED and lv.covers(day) for lv in leaves)
    booked = [a for a in appointments if a.date == day and a.is_active]

    for slot in slots:
        if on_leave or any(a.overlaps(slot.start_time, slot.end_time) for a in booked):
            slot.is_available = False

    slots.sort(key=lambda s: s.start_time)
    return slots


def active_template(
    templates: list[WeeklyScheduleTemplate], day: date
) -> Optional[WeeklyScheduleTemplate]:
    """Return the template whose effective range contains *day*, if any."""
    covering = [t for t in templates if t.covers(day)]
    if len(covering) > 1:
        # Creation rejects overlaps; pick the latest start if old data slipped through.
        logger.warning(
            "Doctor %s has %d templates covering %s",
            covering[0].doctor_id, len(covering), day,
        )
    return max(covering, key=lambda t: t.effective_from, default=None)


class SlotDeriver:
    """Read-only view over a store that answers "which slots are free?"."""

    def __init__(self, store: SchedulingStore) -> None:
        self.store = store

    async def get_available_slots(self, doctor_id: str, day: date | str) -> list[TimeSlot]:
        """Return the ordered slots of *doctor_id* on *day*.

        Takes no lock; a booking committed concurrently may not be reflected.
        The ledger re-validates at commit time.
        """
        day = parse_date(day)
        templates = await self.store.list_templates(doctor_id)
        if active_template(templates, day) is None:
            return []
        leaves = await self.store.list_leaves(doctor_id)
        appointments = await self.store.list_appointments(
            doctor_id=doctor_id, start_date=day, end_date=day
        )
        return derive_slots(day, templates, leaves, appointments)
