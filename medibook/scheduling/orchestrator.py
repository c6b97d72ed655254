"""Booking orchestrator: slot pre-check, ledger commit, and role rules."""

import logging
from datetime import date, time
from typing import Optional

from medibook.scheduling.calendar import parse_date, parse_time
from medibook.scheduling.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    SlotUnavailableError,
)
from medibook.scheduling.ledger import AppointmentLedger
from medibook.scheduling.models import (
    Actor,
    ActorRole,
    Appointment,
    AppointmentCandidate,
    AppointmentStatus,
    DoctorStatus,
)
from medibook.scheduling.slots import SlotDeriver
from medibook.scheduling.store import SchedulingStore

logger = logging.getLogger(__name__)

# Which roles may move an appointment into each target status.
STATUS_PERMISSIONS: dict[AppointmentStatus, frozenset[ActorRole]] = {
    AppointmentStatus.CONFIRMED: frozenset({ActorRole.DOCTOR, ActorRole.ADMIN}),
    AppointmentStatus.COMPLETED: frozenset({ActorRole.DOCTOR, ActorRole.ADMIN}),
    AppointmentStatus.NO_SHOW: frozenset({ActorRole.DOCTOR, ActorRole.ADMIN}),
    AppointmentStatus.CANCELLED: frozenset(ActorRole),
}


class BookingOrchestrator:
    """Validates and commits bookings on top of the deriver and the ledger."""

    def __init__(
        self,
        deriver: SlotDeriver,
        ledger: AppointmentLedger,
        store: SchedulingStore,
    ) -> None:
        self.deriver = deriver
        self.ledger = ledger
        self.store = store

    async def book_appointment(
        self,
        doctor_id: str,
        patient_id: str,
        day: date | str,
        start_time: time | str,
        end_time: time | str,
        reason: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> Appointment:
        """Book ``[start_time, end_time)`` with *doctor_id* on *day*.

        The slot lookup is an optimistic pre-check only; the ledger's commit is
        what actually prevents double-booking. Losing that race surfaces as
        ``SlotUnavailableError``, the same as picking a taken slot.
        """
        day = parse_date(day)
        start = parse_time(start_time, "startTime")
        end = parse_time(end_time, "endTime")
        if start >= end:
            raise InvalidInputError(f"startTime {start} must be before endTime {end}")

        if actor is not None and actor.role == ActorRole.PATIENT and actor.id not in (None, patient_id):
            raise PermissionDeniedError("Patients can only book appointments for themselves")

        doctor = await self.store.get_doctor(doctor_id)
        if doctor is None:
            raise NotFoundError("Doctor", doctor_id)
        if await self.store.get_patient(patient_id) is None:
            raise NotFoundError("Patient", patient_id)
        if doctor.status != DoctorStatus.ACTIVE:
            raise SlotUnavailableError(f"Doctor {doctor_id} is not accepting bookings")

        slots = await self.deriver.get_available_slots(doctor_id, day)
        if not any(
            s.is_available and s.start_time == start and s.end_time == end for s in slots
        ):
            logger.info(
                "Rejected booking for doctor %s on %s %s-%s: not an open slot",
                doctor_id, day, start, end,
            )
            raise SlotUnavailableError(f"{day} {start:%H:%M}-{end:%H:%M} is not an available slot")

        candidate = AppointmentCandidate(
            doctor_id=doctor_id,
            patient_id=patient_id,
            date=day,
            start_time=start,
            end_time=end,
            reason=reason,
        )
        try:
            return await self.ledger.commit_appointment(
                candidate, actor_id=actor.id if actor else patient_id
            )
        except ConflictError as exc:
            raise SlotUnavailableError(
                f"{day} {start:%H:%M}-{end:%H:%M} was just booked by someone else"
            ) from exc

    async def change_status(
        self,
        appointment_id: str,
        new_status: AppointmentStatus | str,
        actor: Actor,
    ) -> Appointment:
        """Apply a status change on behalf of *actor* after checking role rules."""
        try:
            target = AppointmentStatus(new_status)
        except ValueError:
            raise InvalidInputError(f"Unknown appointment status: {new_status!r}")

        if actor.role not in STATUS_PERMISSIONS.get(target, frozenset()):
            raise PermissionDeniedError(
                f"{actor.role.value} may not set an appointment to {target.value}"
            )

        appointment = await self.ledger.get(appointment_id)
        self._check_ownership(appointment, actor)
        return await self.ledger.update_status(
            appointment_id, target, actor_role=actor.role, actor_id=actor.id
        )

    async def cancel(self, appointment_id: str, actor: Actor) -> Appointment:
        return await self.change_status(appointment_id, AppointmentStatus.CANCELLED, actor)

    async def update_notes(
        self, appointment_id: str, notes: Optional[str], actor: Optional[Actor] = None
    ) -> Appointment:
        """Replace the notes; doctors and patients may only touch their own appointments."""
        if actor is not None:
            appointment = await self.ledger.get(appointment_id)
            self._check_ownership(appointment, actor)
        return await self.ledger.update_notes(
            appointment_id, notes, actor_id=actor.id if actor else None
        )

    @staticmethod
    def _check_ownership(appointment: Appointment, actor: Actor) -> None:
        if actor.role == ActorRole.ADMIN or actor.id is None:
            return
        if actor.role == ActorRole.DOCTOR and actor.id != appointment.doctor_id:
            raise PermissionDeniedError("Doctors can only update their own appointments")
        if actor.role == ActorRole.PATIENT and actor.id != appointment.patient_id:
            raise PermissionDeniedError("Patients can only update their own appointments")
