"""Doctor and patient directory endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from medibook.api.dependencies import get_actor, get_service
from medibook.scheduling import Actor, ActorRole, Doctor, Patient, SchedulingService
from medibook.scheduling.models import CamelModel, DoctorStatus, Gender

router = APIRouter()


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class DoctorCreate(CamelModel):
    first_name: str
    last_name: str
    gender: Gender = Gender.OTHER
    email: str
    phone: str = ""
    registration_number: str
    qualifications: list[str] = []
    biography: str = ""


class DoctorUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    gender: Optional[Gender] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    registration_number: Optional[str] = None
    qualifications: Optional[list[str]] = None
    biography: Optional[str] = None
    status: Optional[DoctorStatus] = None


class PatientCreate(CamelModel):
    first_name: str
    last_name: str
    gender: Gender = Gender.OTHER
    email: str
    phone: str = ""
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    medical_history: Optional[str] = None


class PatientUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    gender: Optional[Gender] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    medical_history: Optional[str] = None


# ---------------------------------------------------------------------------
# Doctors
# ---------------------------------------------------------------------------

@router.get("/doctors", response_model=list[Doctor])
async def list_doctors(service: SchedulingService = Depends(get_service)) -> list[Doctor]:
    return await service.directory.list_doctors()


@router.post("/doctors", response_model=Doctor, status_code=201)
async def create_doctor(
    body: DoctorCreate,
    service: SchedulingService = Depends(get_service),
) -> Doctor:
    return await service.directory.register_doctor(**body.model_dump())


@router.get("/doctors/{doctor_id}", response_model=Doctor)
async def get_doctor(
    doctor_id: str,
    service: SchedulingService = Depends(get_service),
) -> Doctor:
    return await service.directory.get_doctor(doctor_id)


@router.put("/doctors/{doctor_id}", response_model=Doctor)
async def update_doctor(
    doctor_id: str,
    body: DoctorUpdate,
    service: SchedulingService = Depends(get_service),
) -> Doctor:
    return await service.directory.update_doctor(doctor_id, **body.model_dump(exclude_unset=True))


# ---------------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------------

@router.get("/patients", response_model=list[Patient])
async def list_patients(service: SchedulingService = Depends(get_service)) -> list[Patient]:
    return await service.directory.list_patients()


@router.post("/patients", response_model=Patient, status_code=201)
async def create_patient(
    body: PatientCreate,
    service: SchedulingService = Depends(get_service),
) -> Patient:
    return await service.directory.register_patient(**body.model_dump())


@router.get("/patients/me", response_model=Patient)
async def get_my_profile(
    actor: Actor = Depends(get_actor),
    service: SchedulingService = Depends(get_service),
) -> Patient:
    """Profile of the calling patient."""
    return await service.directory.get_patient(_own_patient_id(actor))


@router.put("/patients/me", response_model=Patient)
async def update_my_profile(
    body: PatientUpdate,
    actor: Actor = Depends(get_actor),
    service: SchedulingService = Depends(get_service),
) -> Patient:
    return await service.directory.update_patient(
        _own_patient_id(actor), **body.model_dump(exclude_unset=True)
    )


def _own_patient_id(actor: Actor) -> str:
    if actor.role != ActorRole.PATIENT or not actor.id:
        raise HTTPException(status_code=403, detail="Only patients have a profile here")
    return actor.id


@router.get("/patients/{patient_id}", response_model=Patient)
async def get_patient(
    patient_id: str,
    service: SchedulingService = Depends(get_service),
) -> Patient:
    return await service.directory.get_patient(patient_id)


@router.put("/patients/{patient_id}", response_model=Patient)
async def update_patient(
    patient_id: str,
    body: PatientUpdate,
    service: SchedulingService = Depends(get_service),
) -> Patient:
    return await service.directory.update_patient(patient_id, **body.model_dump(exclude_unset=True))
