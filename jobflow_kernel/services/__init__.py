"""Services for the jobflow kernel (write side)."""

from jobflow_kernel.services.automation_triggers import (
    AutomationTriggers,
    InvoiceDraftSettings,
)
from jobflow_kernel.services.collaborators import (
    CrewNotifier,
    CustomerNotifier,
    EventSink,
    LoggingEventSink,
    LoggingNotifier,
    LoggingReminderScheduler,
    ReminderScheduler,
)
from jobflow_kernel.services.invoice_drafting import InvoiceDraftingService
from jobflow_kernel.services.invoice_number_allocator import InvoiceNumberAllocator
from jobflow_kernel.services.job_state_machine import JobStateMachine
from jobflow_kernel.services.transition_recorder import TransitionRecorder

__all__ = [
    "AutomationTriggers",
    "CrewNotifier",
    "CustomerNotifier",
    "EventSink",
    "InvoiceDraftSettings",
    "InvoiceDraftingService",
    "InvoiceNumberAllocator",
    "JobStateMachine",
    "LoggingEventSink",
    "LoggingNotifier",
    "LoggingReminderScheduler",
    "ReminderScheduler",
    "TransitionRecorder",
]
