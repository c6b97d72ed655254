"""Error taxonomy for the appointment and availability engine.

Nothing here is retried automatically. Callers either pick another slot or
time, or an operator resolves the underlying record.
"""


class SchedulingError(Exception):
    """Base class for every engine error."""


class InvalidInputError(SchedulingError):
    """Malformed date, time or range supplied by the caller."""


class ScheduleOverlapError(InvalidInputError):
    """A weekly template's effective range overlaps another of the same doctor."""


class NotFoundError(SchedulingError):
    """A referenced doctor, patient, template, leave or appointment does not exist."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} not found: {resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class SlotUnavailableError(SchedulingError):
    """The requested interval is not a free slot; the user should pick another."""


class ConflictError(SchedulingError):
    """An active appointment already overlaps the candidate interval.

    Raised by the ledger at commit time. The booking orchestrator re-raises
    it as :class:`SlotUnavailableError`.
    """

    def __init__(self, message: str, conflicting_ids: list[str] | None = None):
        super().__init__(message)
        self.conflicting_ids = conflicting_ids or []


class InvalidTransitionError(SchedulingError):
    """A status change not permitted by the appointment or leave state graph."""


class PermissionDeniedError(SchedulingError):
    """The acting role may not perform the requested status change."""
