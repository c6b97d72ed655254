"""Weekly schedule templates: creation, updates and the no-overlap rule."""

import logging
from datetime import date
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from medibook.scheduling.calendar import parse_date, ranges_overlap
from medibook.scheduling.errors import InvalidInputError, NotFoundError, ScheduleOverlapError
from medibook.scheduling.locks import KeyedLock
from medibook.scheduling.models import DaySchedule, WeeklyScheduleTemplate, new_id
from medibook.scheduling.store import SchedulingStore

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def normalize_day_schedules(
    day_schedules: Iterable[DaySchedule | dict],
) -> list[DaySchedule]:
    """Validate a submitted week and return exactly seven entries, Sunday first.

    Weekdays that were not submitted are stored as unavailable. A weekday
    submitted twice is rejected.
    """
    by_day: dict[int, DaySchedule] = {}
    for raw in day_schedules:
        try:
            entry = raw if isinstance(raw, DaySchedule) else DaySchedule.model_validate(raw)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid day schedule: {e.errors()[0]['msg']}") from e
        if entry.day_of_week in by_day:
            raise InvalidInputError(f"Duplicate day schedule for weekday {entry.day_of_week}")
        by_day[entry.day_of_week] = entry

    return [by_day.get(wd, DaySchedule(day_of_week=wd, is_available=False)) for wd in range(7)]


class ScheduleManager:
    """Maintains each doctor's weekly templates.

    At most one template may cover any date for a given doctor; writes for
    the same doctor are serialized so two overlapping submissions cannot both
    pass the check.
    """

    def __init__(self, store: SchedulingStore, locks: KeyedLock) -> None:
        self.store = store
        self.locks = locks

    async def create_template(
        self,
        doctor_id: str,
        effective_from: date | str,
        effective_to: Optional[date | str] = None,
        day_schedules: Iterable[DaySchedule | dict] = (),
        actor_id: Optional[str] = None,
    ) -> WeeklyScheduleTemplate:
        start = parse_date(effective_from, "effectiveFrom")
        end = parse_date(effective_to, "effectiveTo") if effective_to is not None else None
        _check_range(start, end)
        days = normalize_day_schedules(day_schedules)

        if await self.store.get_doctor(doctor_id) is None:
            raise NotFoundError("Doctor", doctor_id)

        async with self.locks.hold(("template", doctor_id)):
            await self._ensure_no_overlap(doctor_id, start, end)
            template = WeeklyScheduleTemplate(
                id=new_id(),
                doctor_id=doctor_id,
                effective_from=start,
                effective_to=end,
                day_schedules=days,
            )
            await self.store.add_template(template)
            await self.store.record_audit(
                "schedule.create", "weekly_schedule", template.id,
                actor_id=actor_id or doctor_id,
                details={"effective_from": start.isoformat(),
                         "effective_to": end.isoformat() if end else None},
            )
            await self.store.commit()

        logger.info(
            "Created schedule %s for doctor %s effective %s..%s",
            template.id, doctor_id, start, end or "open",
        )
        return template

    async def update_template(
        self,
        template_id: str,
        effective_from: Optional[date | str] = None,
        effective_to: Optional[date | str] = _UNSET,
        day_schedules: Optional[Iterable[DaySchedule | dict]] = None,
        actor_id: Optional[str] = None,
    ) -> WeeklyScheduleTemplate:
        """Change a template's range and/or week.

        Leaving *effective_to* out keeps the current end; passing ``None``
        makes the template open-ended.
        """
        current = await self.get_template(template_id)

        start = (
            parse_date(effective_from, "effectiveFrom")
            if effective_from is not None else current.effective_from
        )
        if effective_to is _UNSET:
            end = current.effective_to
        elif effective_to is None:
            end = None
        else:
            end = parse_date(effective_to, "effectiveTo")
        _check_range(start, end)

        changes: dict[str, Any] = {"effective_from": start, "effective_to": end}
        if day_schedules is not None:
            changes["day_schedules"] = normalize_day_schedules(day_schedules)

        async with self.locks.hold(("template", current.doctor_id)):
            await self._ensure_no_overlap(current.doctor_id, start, end, exclude_id=template_id)
            updated = await self.store.update_template(template_id, changes)
            if updated is None:
                raise NotFoundError("Weekly schedule", template_id)
            await self.store.record_audit(
                "schedule.update", "weekly_schedule", template_id,
                actor_id=actor_id or current.doctor_id,
            )
            await self.store.commit()

        logger.info("Updated schedule %s for doctor %s", template_id, current.doctor_id)
        return updated

    async def get_template(self, template_id: str) -> WeeklyScheduleTemplate:
        template = await self.store.get_template(template_id)
        if template is None:
            raise NotFoundError("Weekly schedule", template_id)
        return template

    async def list_templates(
        self,
        doctor_id: str,
        start_date: Optional[date | str] = None,
        end_date: Optional[date | str] = None,
    ) -> list[WeeklyScheduleTemplate]:
        """Templates of *doctor_id*, optionally only those touching [start_date, end_date]."""
        templates = await self.store.list_templates(doctor_id)
        if start_date is None and end_date is None:
            return templates
        start = parse_date(start_date, "startDate") if start_date is not None else date.min
        end = parse_date(end_date, "endDate") if end_date is not None else None
        return [
            t for t in templates
            if ranges_overlap(t.effective_from, t.effective_to, start, end)
        ]

    async def _ensure_no_overlap(
        self,
        doctor_id: str,
        start: date,
        end: Optional[date],
        exclude_id: Optional[str] = None,
    ) -> None:
        for other in await self.store.list_templates(doctor_id):
            if other.id == exclude_id:
                continue
            if ranges_overlap(start, end, other.effective_from, other.effective_to):
                raise ScheduleOverlapError(
                    f"Effective range {start}..{end or 'open'} overlaps schedule "
                    f"{other.id} ({other.effective_from}..{other.effective_to or 'open'})"
                )


def _check_range(start: date, end: Optional[date]) -> None:
    if end is not None and start > end:
        raise InvalidInputError(f"effectiveFrom {start} is after effectiveTo {end}")
