"""Doctor and patient lookups used by the booking and leave flows."""

import logging
from typing import Any

from medibook.scheduling.errors import InvalidInputError, NotFoundError
from medibook.scheduling.models import Doctor, Patient, new_id
from medibook.scheduling.store import SchedulingStore

logger = logging.getLogger(__name__)


class Directory:
    def __init__(self, store: SchedulingStore) -> None:
        self.store = store

    # -- doctors ----------------------------------------------------------

    async def register_doctor(self, **fields: Any) -> Doctor:
        registration = fields.get("registration_number")
        if registration and await self.store.find_doctor_by_registration(registration):
            raise InvalidInputError(f"Registration number already in use: {registration}")
        doctor = Doctor(id=new_id(), **fields)
        await self.store.add_doctor(doctor)
        await self.store.record_audit("doctor.create", "doctor", doctor.id)
        await self.store.commit()
        logger.info("Registered doctor %s (%s)", doctor.id, doctor.registration_number)
        return doctor

    async def get_doctor(self, doctor_id: str) -> Doctor:
        doctor = await self.store.get_doctor(doctor_id)
        if doctor is None:
            raise NotFoundError("Doctor", doctor_id)
        return doctor

    async def list_doctors(self) -> list[Doctor]:
        return await self.store.list_doctors()

    async def update_doctor(self, doctor_id: str, **changes: Any) -> Doctor:
        changes = {k: v for k, v in changes.items() if v is not None}
        registration = changes.get("registration_number")
        if registration:
            holder = await self.store.find_doctor_by_registration(registration)
            if holder is not None and holder.id != doctor_id:
                raise InvalidInputError(f"Registration number already in use: {registration}")
        doctor = await self.store.update_doctor(doctor_id, changes)
        if doctor is None:
            raise NotFoundError("Doctor", doctor_id)
        await self.store.record_audit(
            "doctor.update", "doctor", doctor_id, details={"fields": sorted(changes)}
        )
        await self.store.commit()
        return doctor

    # -- patients ---------------------------------------------------------

    async def register_patient(self, **fields: Any) -> Patient:
        patient = Patient(id=new_id(), **fields)
        await self.store.add_patient(patient)
        await self.store.record_audit("patient.create", "patient", patient.id)
        await self.store.commit()
        logger.info("Registered patient %s", patient.id)
        return patient

    async def get_patient(self, patient_id: str) -> Patient:
        patient = await self.store.get_patient(patient_id)
        if patient is None:
            raise NotFoundError("Patient", patient_id)
        return patient

    async def list_patients(self) -> list[Patient]:
        return await self.store.list_patients()

    async def update_patient(self, patient_id: str, **changes: Any) -> Patient:
        changes = {k: v for k, v in changes.items() if v is not None}
        patient = await self.store.update_patient(patient_id, changes)
        if patient is None:
            raise NotFoundError("Patient", patient_id)
        await self.store.record_audit(
            "patient.update", "patient", patient_id, details={"fields": sorted(changes)}
        )
        await self.store.commit()
        return patient
