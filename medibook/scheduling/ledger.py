"""Appointment ledger: the authoritative record of bookings and their status."""

import logging
from datetime import date
from typing import Optional

from medibook.scheduling.calendar import parse_date
from medibook.scheduling.errors import (
    ConflictError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
)
from medibook.scheduling.locks import KeyedLock
from medibook.scheduling.models import (
    ACTIVE_STATUSES,
    ActorRole,
    Appointment,
    AppointmentCandidate,
    AppointmentStatus,
    new_id,
)
from medibook.scheduling.store import SchedulingStore

logger = logging.getLogger(__name__)

# Statuses not listed as keys are terminal.
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _coerce_status(value: AppointmentStatus | str) -> AppointmentStatus:
    try:
        return AppointmentStatus(value)
    except ValueError:
        raise InvalidInputError(f"Unknown appointment status: {value!r}")


class AppointmentLedger:
    """Commits appointments without double-booking and walks the status graph.

    Role restrictions are not checked here; see ``BookingOrchestrator``.
    """

    def __init__(self, store: SchedulingStore, locks: KeyedLock) -> None:
        self.store = store
        self.locks = locks

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def commit_appointment(
        self, candidate: AppointmentCandidate, actor_id: Optional[str] = None
    ) -> Appointment:
        """Persist *candidate* unless an active booking overlaps it.

        The overlap check and the insert run under a lock keyed on
        ``(doctor_id, date)`` and are committed before the lock is released,
        so of two racing commits for the same interval exactly one succeeds.
        """
        if candidate.status not in ACTIVE_STATUSES:
            raise InvalidInputError(
                f"New appointments must be SCHEDULED or CONFIRMED, got {candidate.status.value}"
            )

        key = (candidate.doctor_id, candidate.date)
        async with self.locks.hold(key):
            async with self.store.booking_guard(candidate.doctor_id, candidate.date):
                existing = await self.store.list_appointments(
                    doctor_id=candidate.doctor_id,
                    start_date=candidate.date,
                    end_date=candidate.date,
                )
                clashes = [
                    a for a in existing
                    if a.is_active and a.overlaps(candidate.start_time, candidate.end_time)
                ]
                if clashes:
                    logger.warning(
                        "Booking conflict for doctor %s on %s %s-%s (clashes with %s)",
                        candidate.doctor_id, candidate.date,
                        candidate.start_time, candidate.end_time,
                        ", ".join(a.id for a in clashes),
                    )
                    raise ConflictError(
                        "Interval overlaps an existing appointment",
                        conflicting_ids=[a.id for a in clashes],
                    )

                appointment = Appointment(id=new_id(), **candidate.model_dump())
                await self.store.add_appointment(appointment)
                await self.store.record_audit(
                    "appointment.create", "appointment", appointment.id,
                    actor_id=actor_id,
                    details={
                        "doctor_id": appointment.doctor_id,
                        "patient_id": appointment.patient_id,
                        "date": appointment.date.isoformat(),
                        "start_time": appointment.start_time.isoformat(),
                        "end_time": appointment.end_time.isoformat(),
                    },
                )
                await self.store.commit()

        logger.info(
            "Committed appointment %s for doctor %s on %s %s-%s",
            appointment.id, appointment.doctor_id, appointment.date,
            appointment.start_time, appointment.end_time,
        )
        return appointment

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def update_status(
        self,
        appointment_id: str,
        new_status: AppointmentStatus | str,
        actor_role: Optional[ActorRole] = None,
        actor_id: Optional[str] = None,
    ) -> Appointment:
        """Move an appointment along the status graph.

        The write only succeeds if the stored status still equals the one the
        transition was validated against; otherwise the caller lost a race and
        gets ``InvalidTransitionError``.
        """
        target = _coerce_status(new_status)
        current = await self.get(appointment_id)

        if not can_transition(current.status, target):
            raise InvalidTransitionError(
                f"Cannot move appointment {appointment_id} "
                f"from {current.status.value} to {target.value}"
            )

        updated = await self.store.update_appointment(
            appointment_id, {"status": target}, expected_status=current.status
        )
        if updated is None:
            raise InvalidTransitionError(
                f"Appointment {appointment_id} changed status concurrently; "
                f"expected {current.status.value}"
            )

        await self.store.record_audit(
            "appointment.status", "appointment", appointment_id,
            actor_id=actor_id,
            details={
                "from": current.status.value,
                "to": target.value,
                "actor_role": actor_role.value if actor_role else None,
            },
        )
        await self.store.commit()
        logger.info(
            "Appointment %s: %s -> %s", appointment_id, current.status.value, target.value
        )
        return updated

    async def cancel(
        self,
        appointment_id: str,
        actor_role: Optional[ActorRole] = None,
        actor_id: Optional[str] = None,
    ) -> Appointment:
        return await self.update_status(
            appointment_id, AppointmentStatus.CANCELLED, actor_role, actor_id
        )

    # ------------------------------------------------------------------
    # Reads and notes
    # ------------------------------------------------------------------

    async def get(self, appointment_id: str) -> Appointment:
        appointment = await self.store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    async def update_notes(
        self, appointment_id: str, notes: Optional[str], actor_id: Optional[str] = None
    ) -> Appointment:
        updated = await self.store.update_appointment(appointment_id, {"notes": notes})
        if updated is None:
            raise NotFoundError("Appointment", appointment_id)
        await self.store.record_audit(
            "appointment.notes", "appointment", appointment_id, actor_id=actor_id
        )
        await self.store.commit()
        return updated

    async def list_for_doctor(
        self,
        doctor_id: str,
        status: Optional[AppointmentStatus] = None,
        day: Optional[date | str] = None,
    ) -> list[Appointment]:
        day = parse_date(day) if day is not None else None
        return await self.store.list_appointments(
            doctor_id=doctor_id, status=status, start_date=day, end_date=day
        )

    async def list_for_patient(
        self, patient_id: str, status: Optional[AppointmentStatus] = None
    ) -> list[Appointment]:
        return await self.store.list_appointments(patient_id=patient_id, status=status)

    async def list_all(
        self,
        status: Optional[AppointmentStatus] = None,
        start_date: Optional[date | str] = None,
        end_date: Optional[date | str] = None,
    ) -> list[Appointment]:
        start = parse_date(start_date, "startDate") if start_date is not None else None
        end = parse_date(end_date, "endDate") if end_date is not None else None
        if start and end and start > end:
            raise InvalidInputError("startDate must not be after endDate")
        return await self.store.list_appointments(status=status, start_date=start, end_date=end)
