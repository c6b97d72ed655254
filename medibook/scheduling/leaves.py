"""Leave approval workflow: PENDING -> APPROVED | REJECTED."""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from medibook.scheduling.calendar import parse_date
from medibook.scheduling.errors import InvalidInputError, InvalidTransitionError, NotFoundError
from medibook.scheduling.models import Leave, LeaveDecision, LeaveStatus, new_id
from medibook.scheduling.store import SchedulingStore

logger = logging.getLogger(__name__)


class LeaveWorkflow:
    """Creates leave requests and records the single decision each one gets."""

    def __init__(self, store: SchedulingStore) -> None:
        self.store = store

    async def request_leave(
        self,
        doctor_id: str,
        start_date: date | str,
        end_date: date | str,
        reason: str = "",
    ) -> Leave:
        """File a new leave request; it always starts PENDING."""
        start = parse_date(start_date, "startDate")
        end = parse_date(end_date, "endDate")
        if start > end:
            raise InvalidInputError(f"Leave range is empty: {start} is after {end}")
        if await self.store.get_doctor(doctor_id) is None:
            raise NotFoundError("Doctor", doctor_id)

        leave = Leave(
            id=new_id(),
            doctor_id=doctor_id,
            start_date=start,
            end_date=end,
            reason=reason or "",
        )
        await self.store.add_leave(leave)
        await self.store.record_audit(
            "leave.request", "leave", leave.id,
            actor_id=doctor_id,
            details={"start_date": start.isoformat(), "end_date": end.isoformat()},
        )
        await self.store.commit()
        logger.info("Leave %s requested by doctor %s for %s..%s", leave.id, doctor_id, start, end)
        return leave

    async def decide(
        self,
        leave_id: str,
        approve: bool,
        actor_id: str,
        rejection_reason: Optional[str] = None,
    ) -> LeaveDecision:
        """Approve or reject a PENDING leave.

        Approval does not cancel anything. Active appointments that fall inside
        the approved range come back as ``warnings`` for manual follow-up.
        """
        leave = await self.get(leave_id)
        if leave.status != LeaveStatus.PENDING:
            raise InvalidTransitionError(
                f"Leave {leave_id} was already decided ({leave.status.value})"
            )

        now = datetime.now(timezone.utc)
        changes: dict = {
            "status": LeaveStatus.APPROVED if approve else LeaveStatus.REJECTED,
            "approved_by": actor_id,
            "approved_at": now,
        }
        if not approve:
            changes["rejection_reason"] = rejection_reason

        decided = await self.store.update_leave(
            leave_id, changes, expected_status=LeaveStatus.PENDING
        )
        if decided is None:
            raise InvalidTransitionError(f"Leave {leave_id} was decided concurrently")

        warnings = []
        if approve:
            booked = await self.store.list_appointments(
                doctor_id=decided.doctor_id,
                start_date=decided.start_date,
                end_date=decided.end_date,
            )
            warnings = [a for a in booked if a.is_active]

        await self.store.record_audit(
            "leave.approve" if approve else "leave.reject", "leave", leave_id,
            actor_id=actor_id,
            details={
                "rejection_reason": rejection_reason if not approve else None,
                "affected_appointments": [a.id for a in warnings],
            },
        )
        await self.store.commit()

        if warnings:
            logger.warning(
                "Leave %s approved with %d active appointment(s) in range",
                leave_id, len(warnings),
            )
        logger.info("Leave %s %s by %s", leave_id, decided.status.value, actor_id)
        return LeaveDecision(leave=decided, warnings=warnings)

    async def amend(
        self,
        leave_id: str,
        start_date: Optional[date | str] = None,
        end_date: Optional[date | str] = None,
        reason: Optional[str] = None,
    ) -> Leave:
        """Change the dates or reason of a leave that is still PENDING."""
        leave = await self.get(leave_id)
        if leave.status != LeaveStatus.PENDING:
            raise InvalidTransitionError(
                f"Leave {leave_id} is {leave.status.value} and can no longer be edited"
            )

        start = parse_date(start_date, "startDate") if start_date is not None else leave.start_date
        end = parse_date(end_date, "endDate") if end_date is not None else leave.end_date
        if start > end:
            raise InvalidInputError(f"Leave range is empty: {start} is after {end}")

        changes: dict = {"start_date": start, "end_date": end}
        if reason is not None:
            changes["reason"] = reason

        amended = await self.store.update_leave(
            leave_id, changes, expected_status=LeaveStatus.PENDING
        )
        if amended is None:
            raise InvalidTransitionError(f"Leave {leave_id} was decided concurrently")
        await self.store.record_audit("leave.amend", "leave", leave_id, actor_id=leave.doctor_id)
        await self.store.commit()
        return amended

    async def get(self, leave_id: str) -> Leave:
        leave = await self.store.get_leave(leave_id)
        if leave is None:
            raise NotFoundError("Leave", leave_id)
        return leave

    async def list_leaves(
        self,
        doctor_id: str,
        status: Optional[LeaveStatus] = None,
        start_date: Optional[date | str] = None,
        end_date: Optional[date | str] = None,
    ) -> list[Leave]:
        """Leaves of *doctor_id*, optionally those overlapping [start_date, end_date]."""
        start = parse_date(start_date, "startDate") if start_date is not None else None
        end = parse_date(end_date, "endDate") if end_date is not None else None

        leaves = await self.store.list_leaves(doctor_id)
        return [
            lv for lv in leaves
            if (status is None or lv.status == status)
            and (start is None or lv.end_date >= start)
            and (end is None or lv.start_date <= end)
        ]
