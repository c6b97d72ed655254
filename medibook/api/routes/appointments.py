"""Appointment booking, listing and status endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from medibook.api.dependencies import get_actor, get_optional_actor, get_service
from medibook.scheduling import (
    Actor,
    ActorRole,
    Appointment,
    AppointmentStatus,
    SchedulingService,
)
from medibook.scheduling.models import CamelModel, ClockTime

router = APIRouter()


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class AppointmentCreate(CamelModel):
    doctor_id: str
    patient_id: str
    date: date
    start_time: ClockTime
    end_time: ClockTime
    reason: Optional[str] = None


class AppointmentUpdate(CamelModel):
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None


# ---------------------------------------------------------------------------
# Book / list / get / update / cancel
# ---------------------------------------------------------------------------

@router.post("/appointments", response_model=Appointment, status_code=201)
async def book_appointment(
    body: AppointmentCreate,
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: SchedulingService = Depends(get_service),
) -> Appointment:
    """Book one derived slot; 409 if it is taken or was just taken."""
    return await service.booking.book_appointment(
        body.doctor_id,
        body.patient_id,
        body.date,
        body.start_time,
        body.end_time,
        reason=body.reason,
        actor=actor,
    )


@router.get("/appointments", response_model=list[Appointment])
async def list_appointments(
    status: Optional[AppointmentStatus] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    service: SchedulingService = Depends(get_service),
) -> list[Appointment]:
    return await service.ledger.list_all(status, start_date, end_date)


@router.get("/appointments/me", response_model=list[Appointment])
async def list_my_appointments(
    status: Optional[AppointmentStatus] = Query(None),
    actor: Actor = Depends(get_actor),
    service: SchedulingService = Depends(get_service),
) -> list[Appointment]:
    """Appointments of the calling doctor or patient."""
    if not actor.id:
        raise HTTPException(status_code=401, detail="Missing X-Actor-Id header")
    if actor.role == ActorRole.DOCTOR:
        return await service.ledger.list_for_doctor(actor.id, status)
    if actor.role == ActorRole.PATIENT:
        return await service.ledger.list_for_patient(actor.id, status)
    return await service.ledger.list_all(status)


@router.get("/appointments/{appointment_id}", response_model=Appointment)
async def get_appointment(
    appointment_id: str,
    service: SchedulingService = Depends(get_service),
) -> Appointment:
    return await service.ledger.get(appointment_id)


@router.put("/appointments/{appointment_id}", response_model=Appointment)
async def update_appointment(
    appointment_id: str,
    body: AppointmentUpdate,
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: SchedulingService = Depends(get_service),
) -> Appointment:
    """Change status and/or notes. Status changes need an actor for the role rules.

    The status change runs first, so a rejected transition leaves the notes untouched.
    """
    if body.status is not None and actor is None:
        raise HTTPException(status_code=401, detail="Missing X-Actor-Role header")

    appointment = await service.ledger.get(appointment_id)
    if body.status is not None:
        appointment = await service.booking.change_status(appointment_id, body.status, actor)
    if "notes" in body.model_fields_set:
        appointment = await service.booking.update_notes(appointment_id, body.notes, actor)
    return appointment


@router.put("/appointments/{appointment_id}/cancel", response_model=Appointment)
async def cancel_appointment(
    appointment_id: str,
    actor: Actor = Depends(get_actor),
    service: SchedulingService = Depends(get_service),
) -> Appointment:
    return await service.booking.cancel(appointment_id, actor)


# ---------------------------------------------------------------------------
# Per-doctor and per-patient views
# ---------------------------------------------------------------------------

@router.get("/doctors/{doctor_id}/appointments", response_model=list[Appointment])
async def list_doctor_appointments(
    doctor_id: str,
    status: Optional[AppointmentStatus] = Query(None),
    day: Optional[str] = Query(None, alias="date"),
    service: SchedulingService = Depends(get_service),
) -> list[Appointment]:
    await service.directory.get_doctor(doctor_id)
    return await service.ledger.list_for_doctor(doctor_id, status, day)


@router.get("/patients/{patient_id}/appointments", response_model=list[Appointment])
async def list_patient_appointments(
    patient_id: str,
    status: Optional[AppointmentStatus] = Query(None),
    service: SchedulingService = Depends(get_service),
) -> list[Appointment]:
    await service.directory.get_patient(patient_id)
    return await service.ledger.list_for_patient(patient_id, status)
