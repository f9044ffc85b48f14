"""
Config -> Kernel Bridges.

Functions that turn a LifecycleConfig into wired kernel objects.  These live
in jobflow_config (the producer) because the kernel must NEVER import
jobflow_config.

Usage:
    from jobflow_config import get_active_config
    from jobflow_config.bridges import build_state_machine

    config = get_active_config()
    machine = build_state_machine(config, get_session_factory())
"""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from jobflow_config.schema import LifecycleConfig
from jobflow_kernel.domain.clock import Clock, SystemClock
from jobflow_kernel.services.automation_triggers import (
    AutomationTriggers,
    InvoiceDraftSettings,
)
from jobflow_kernel.services.collaborators import (
    CrewNotifier,
    CustomerNotifier,
    EventSink,
    ReminderScheduler,
)
from jobflow_kernel.services.invoice_number_allocator import InvoiceNumberAllocator
from jobflow_kernel.services.job_state_machine import JobStateMachine


def build_invoice_number_allocator(
    config: LifecycleConfig,
    clock: Clock | None = None,
) -> InvoiceNumberAllocator:
    return InvoiceNumberAllocator(
        clock=clock,
        prefix=config.invoicing.prefix,
        min_digits=config.invoicing.min_digits,
        lock_timeout_ms=config.locking.invoice_lock_timeout_ms,
    )


def build_invoice_draft_settings(config: LifecycleConfig) -> InvoiceDraftSettings:
    invoicing = config.invoicing
    return InvoiceDraftSettings(
        payment_terms_days=invoicing.payment_terms_days,
        payment_terms_label=invoicing.payment_terms_label,
        default_line_description=invoicing.default_line_description,
        max_number_attempts=invoicing.max_number_attempts,
    )


def build_state_machine(
    config: LifecycleConfig,
    session_factory: sessionmaker[Session],
    clock: Clock | None = None,
    crew_notifier: CrewNotifier | None = None,
    customer_notifier: CustomerNotifier | None = None,
    reminder_scheduler: ReminderScheduler | None = None,
    event_sink: EventSink | None = None,
) -> JobStateMachine:
    """Wire a JobStateMachine and its triggers from configuration.

    Collaborators left as None fall back to the logging implementations.
    """
    clock = clock or SystemClock()
    triggers = AutomationTriggers(
        session_factory,
        clock=clock,
        crew_notifier=crew_notifier,
        customer_notifier=customer_notifier,
        reminder_scheduler=reminder_scheduler,
        allocator=build_invoice_number_allocator(config, clock),
        invoice_settings=build_invoice_draft_settings(config),
        reminder_offsets=config.reminders.offsets_days,
        job_lock_timeout_ms=config.locking.job_lock_timeout_ms,
    )
    return JobStateMachine(
        session_factory,
        clock=clock,
        triggers=triggers,
        event_sink=event_sink,
        job_lock_timeout_ms=config.locking.job_lock_timeout_ms,
    )
