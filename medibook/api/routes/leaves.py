"""Doctor leave requests and their approval."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from medibook.api.dependencies import get_optional_actor, get_service
from medibook.scheduling import Actor, ActorRole, Appointment, Leave, LeaveStatus, SchedulingService
from medibook.scheduling.errors import InvalidInputError, NotFoundError, PermissionDeniedError
from medibook.scheduling.models import CamelModel

router = APIRouter(prefix="/doctors/{doctor_id}/leaves")


class LeaveCreate(CamelModel):
    doctor_id: Optional[str] = None
    start_date: date
    end_date: date
    reason: str = ""


class LeaveUpdate(CamelModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = None


class LeaveApprove(CamelModel):
    approved_by: Optional[str] = None


class LeaveReject(CamelModel):
    approved_by: Optional[str] = None
    rejection_reason: Optional[str] = None


class LeaveDecisionResponse(Leave):
    """The decided leave plus active appointments that now fall inside it."""

    warnings: list[Appointment] = []


@router.get("", response_model=list[Leave])
async def list_leaves(
    doctor_id: str,
    status: Optional[LeaveStatus] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    service: SchedulingService = Depends(get_service),
) -> list[Leave]:
    return await service.leaves.list_leaves(doctor_id, status, start_date, end_date)


@router.post("", response_model=Leave, status_code=201)
async def request_leave(
    doctor_id: str,
    body: LeaveCreate,
    service: SchedulingService = Depends(get_service),
) -> Leave:
    if body.doctor_id and body.doctor_id != doctor_id:
        raise InvalidInputError("doctorId in body does not match the URL")
    return await service.leaves.request_leave(
        doctor_id, body.start_date, body.end_date, body.reason
    )


@router.put("/{leave_id}", response_model=Leave)
async def amend_leave(
    doctor_id: str,
    leave_id: str,
    body: LeaveUpdate,
    service: SchedulingService = Depends(get_service),
) -> Leave:
    await _get_owned(service, doctor_id, leave_id)
    return await service.leaves.amend(
        leave_id, body.start_date, body.end_date, body.reason
    )


@router.put("/{leave_id}/approve", response_model=LeaveDecisionResponse)
async def approve_leave(
    doctor_id: str,
    leave_id: str,
    body: LeaveApprove,
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: SchedulingService = Depends(get_service),
) -> LeaveDecisionResponse:
    await _get_owned(service, doctor_id, leave_id)
    decision = await service.leaves.decide(
        leave_id, approve=True, actor_id=_decider(body.approved_by, actor)
    )
    return LeaveDecisionResponse(**decision.leave.model_dump(), warnings=decision.warnings)


@router.put("/{leave_id}/reject", response_model=LeaveDecisionResponse)
async def reject_leave(
    doctor_id: str,
    leave_id: str,
    body: LeaveReject,
    actor: Optional[Actor] = Depends(get_optional_actor),
    service: SchedulingService = Depends(get_service),
) -> LeaveDecisionResponse:
    await _get_owned(service, doctor_id, leave_id)
    decision = await service.leaves.decide(
        leave_id,
        approve=False,
        actor_id=_decider(body.approved_by, actor),
        rejection_reason=body.rejection_reason,
    )
    return LeaveDecisionResponse(**decision.leave.model_dump(), warnings=decision.warnings)


async def _get_owned(service: SchedulingService, doctor_id: str, leave_id: str) -> Leave:
    leave = await service.leaves.get(leave_id)
    if leave.doctor_id != doctor_id:
        raise NotFoundError("Leave", leave_id)
    return leave


def _decider(approved_by: Optional[str], actor: Optional[Actor]) -> str:
    if actor is not None and actor.role == ActorRole.PATIENT:
        raise PermissionDeniedError("Patients cannot decide leave requests")
    decider = approved_by or (actor.id if actor else None)
    if not decider:
        raise InvalidInputError("approvedBy is required")
    return decider
