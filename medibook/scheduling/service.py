"""Wires the engine components around one store."""

from medibook.scheduling.directory import Directory
from medibook.scheduling.leaves import LeaveWorkflow
from medibook.scheduling.ledger import AppointmentLedger
from medibook.scheduling.locks import KeyedLock
from medibook.scheduling.orchestrator import BookingOrchestrator
from medibook.scheduling.slots import SlotDeriver
from medibook.scheduling.store import SchedulingStore
from medibook.scheduling.templates import ScheduleManager


class SchedulingService:
    """All engine components sharing a store and a lock registry.

    The store is usually request-scoped; *locks* must be shared by every
    service instance in the process for booking commits to be serialized.
    """

    def __init__(self, store: SchedulingStore, locks: KeyedLock) -> None:
        self.store = store
        self.locks = locks
        self.directory = Directory(store)
        self.deriver = SlotDeriver(store)
        self.ledger = AppointmentLedger(store, locks)
        self.leaves = LeaveWorkflow(store)
        self.schedules = ScheduleManager(store, locks)
        self.booking = BookingOrchestrator(self.deriver, self.ledger, store)
