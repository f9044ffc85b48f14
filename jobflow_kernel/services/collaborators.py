"""
External collaborators consumed by the automation triggers and the state
machine, plus logging implementations of each.

Delivery of email/SMS and the event bus live outside the kernel.  The
logging implementations record what would have been sent, which is also what
the kernel uses when nothing else is wired in.
"""

from typing import Protocol, runtime_checkable
from uuid import UUID

from jobflow_kernel.domain.dtos import JobSnapshot
from jobflow_kernel.domain.events import DomainEvent
from jobflow_kernel.domain.reminders import PaymentReminder
from jobflow_kernel.logging_config import get_logger

logger = get_logger("services.collaborators")


@runtime_checkable
class CrewNotifier(Protocol):
    def notify_crew_member(self, job: JobSnapshot, crew_member: str, event: str) -> None:
        ...


@runtime_checkable
class CustomerNotifier(Protocol):
    def notify_customer(self, job: JobSnapshot, event: str) -> None:
        ...


@runtime_checkable
class ReminderScheduler(Protocol):
    def schedule_invoice_reminders(
        self,
        invoice_id: UUID,
        invoice_number: str,
        reminders: list[PaymentReminder],
    ) -> None:
        ...

    def cancel_invoice_reminders(self, invoice_id: UUID) -> None:
        ...


@runtime_checkable
class EventSink(Protocol):
    def publish(self, event: DomainEvent) -> None:
        ...


class LoggingNotifier:
    """Crew and customer notifier that only logs."""

    def notify_crew_member(self, job: JobSnapshot, crew_member: str, event: str) -> None:
        logger.info(
            "crew_notification",
            extra={
                "job_id": str(job.id),
                "crew_member": str(crew_member),
                "notification": event,
                "scheduled_date": job.scheduled_date,
            },
        )

    def notify_customer(self, job: JobSnapshot, event: str) -> None:
        logger.info(
            "customer_notification",
            extra={
                "job_id": str(job.id),
                "customer_email": job.customer_email,
                "notification": event,
            },
        )


class LoggingReminderScheduler:
    """Reminder scheduler that only logs."""

    def schedule_invoice_reminders(
        self,
        invoice_id: UUID,
        invoice_number: str,
        reminders: list[PaymentReminder],
    ) -> None:
        for reminder in reminders:
            logger.info(
                "invoice_reminder_scheduled",
                extra={
                    "invoice_id": str(invoice_id),
                    "invoice_number": invoice_number,
                    "send_on": reminder.send_on,
                    "reminder": f"Invoice {invoice_number} {reminder.label}",
                },
            )

    def cancel_invoice_reminders(self, invoice_id: UUID) -> None:
        logger.info("invoice_reminders_cancelled", extra={"invoice_id": str(invoice_id)})


class LoggingEventSink:
    """Event sink that writes each event payload to the log."""

    def publish(self, event: DomainEvent) -> None:
        logger.info("domain_event_published", extra={"event": event.to_payload()})
