"""Weekly schedule templates and derived slot availability."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from medibook.api.dependencies import get_optional_actor, get_service
from medibook.scheduling import Actor, DaySchedule, SchedulingService, TimeSlot, WeeklyScheduleTemplate
from medibook.scheduling.errors import InvalidInputError, NotFoundError
from medibook.scheduling.models import CamelModel

router = APIRouter(prefix="/doctors/{doctor_id}/schedule")


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class ScheduleCreate(CamelModel):
    doctor_id: Optional[str] = None
    effective_from: date
    effective_to: Optional[date] = None
    day_schedules: list[DaySchedule] = []


class ScheduleUpdate(CamelModel):
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    day_schedules: Optional[list[DaySchedule]] = None


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------

@router.get("/available-slots", response_model=list[TimeSlot])
async def get_available_slots(
    doctor_id: str,
    day: str = Query(..., alias="date", description="YYYY-MM-DD"),
    service: SchedulingService = Depends(get_service),
) -> list[TimeSlot]:
    """Ordered slots for one doctor and one date; booked or on-leave slots are flagged unavailable."""
    return await service.deriver.get_available_slots(doctor_id, day)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

@router.get("", response_model=list[WeeklyScheduleTemplate])
async def list_schedules(
    doctor_id: str,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    service: SchedulingService = Depends(get_service),
) -> list[WeeklyScheduleTemplate]:
    return await service.schedules.list_templates(doctor_id, start_date, end_date)


@router.post("", response_model=WeeklyScheduleTemplate, status_code=201)
async def create_schedule(
    doctor_id: str,
    body: ScheduleCreate,
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: SchedulingService = Depends(get_service),
) -> WeeklyScheduleTemplate:
    if body.doctor_id and body.doctor_id != doctor_id:
        raise InvalidInputError("doctorId in body does not match the URL")
    return await service.schedules.create_template(
        doctor_id,
        body.effective_from,
        body.effective_to,
        body.day_schedules,
        actor_id=actor.id if actor else None,
    )


@router.get("/{schedule_id}", response_model=WeeklyScheduleTemplate)
async def get_schedule(
    doctor_id: str,
    schedule_id: str,
    service: SchedulingService = Depends(get_service),
) -> WeeklyScheduleTemplate:
    template = await service.schedules.get_template(schedule_id)
    _check_owner(template, doctor_id)
    return template


@router.put("/{schedule_id}", response_model=WeeklyScheduleTemplate)
async def update_schedule(
    doctor_id: str,
    schedule_id: str,
    body: ScheduleUpdate,
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: SchedulingService = Depends(get_service),
) -> WeeklyScheduleTemplate:
    """Partial update; an explicit ``"effectiveTo": null`` makes the template open-ended."""
    template = await service.schedules.get_template(schedule_id)
    _check_owner(template, doctor_id)

    kwargs = {}
    if "effective_to" in body.model_fields_set:
        kwargs["effective_to"] = body.effective_to
    return await service.schedules.update_template(
        schedule_id,
        effective_from=body.effective_from,
        day_schedules=body.day_schedules,
        actor_id=actor.id if actor else None,
        **kwargs,
    )


def _check_owner(template: WeeklyScheduleTemplate, doctor_id: str) -> None:
    if template.doctor_id != doctor_id:
        raise NotFoundError("Weekly schedule", template.id)
