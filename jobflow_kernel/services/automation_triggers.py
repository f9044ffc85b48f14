"""
AutomationTriggers -- post-commit side effects keyed by destination state.

Responsibility:
    After JobStateMachine commits a transition, runs the handlers registered
    for the destination state: crew notices, work-start stamping, invoice
    drafting, invoice status changes, client-category updates and
    cancellation notices.

Architecture position:
    Kernel > Services.  Invoked only by JobStateMachine, after commit.

Invariants enforced:
    - Every handler runs in its own transaction (its own session) and its
      own error boundary.  A failing handler is logged as
      ``automation_trigger_failed`` and never affects the committed
      transition or the other handlers.
    - Handlers write job fields other than status (work_start_time,
      invoice_id) but NEVER status.
    - Re-running a handler is safe: work_start_time is only set when NULL,
      invoice drafting locks the job row and checks for an existing invoice
      first, category updates only write when the value differs.
    - External calls (reminder scheduling and cancellation) happen only
      after the handler's transaction committed.

Failure modes:
    - Any exception inside a handler is contained and reported in the list
      returned by ``run()`` as AutomationTriggerError.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from jobflow_kernel.db.engine import session_scope
from jobflow_kernel.db.locks import apply_lock_timeout
from jobflow_kernel.domain.clock import Clock, SystemClock
from jobflow_kernel.domain.dtos import TransitionRecord
from jobflow_kernel.domain.job_states import JobState
from jobflow_kernel.domain.reminders import (
    DEFAULT_REMINDER_OFFSETS,
    build_reminder_schedule,
)
from jobflow_kernel.exceptions import (
    AutomationTriggerError,
    InvoiceNotFoundError,
    JobNotFoundError,
)
from jobflow_kernel.logging_config import get_logger
from jobflow_kernel.models.client import Client, ClientCategory
from jobflow_kernel.models.invoice import Invoice, InvoiceStatus
from jobflow_kernel.models.job import Job
from jobflow_kernel.selectors.job_selector import JobSelector
from jobflow_kernel.services.collaborators import (
    CrewNotifier,
    CustomerNotifier,
    LoggingNotifier,
    LoggingReminderScheduler,
    ReminderScheduler,
)
from jobflow_kernel.services.invoice_drafting import InvoiceDraftingService
from jobflow_kernel.services.invoice_number_allocator import InvoiceNumberAllocator

logger = get_logger("services.automation_triggers")


@dataclass(frozen=True)
class InvoiceDraftSettings:
    """Knobs for invoices drafted on completion."""

    payment_terms_days: int = 30
    payment_terms_label: str = "Net 30"
    default_line_description: str = "Tree Service"
    max_number_attempts: int = 3


TriggerHandler = Callable[[UUID, TransitionRecord], None]


class AutomationTriggers:
    """Registry and runner of post-commit handlers."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        crew_notifier: CrewNotifier | None = None,
        customer_notifier: CustomerNotifier | None = None,
        reminder_scheduler: ReminderScheduler | None = None,
        allocator: InvoiceNumberAllocator | None = None,
        invoice_settings: InvoiceDraftSettings | None = None,
        reminder_offsets: Sequence[int] = DEFAULT_REMINDER_OFFSETS,
        job_lock_timeout_ms: int = 5000,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        notifier = LoggingNotifier()
        self._crew_notifier = crew_notifier or notifier
        self._customer_notifier = customer_notifier or notifier
        self._reminder_scheduler = reminder_scheduler or LoggingReminderScheduler()
        self._allocator = allocator or InvoiceNumberAllocator(clock=self._clock)
        self._invoice_settings = invoice_settings or InvoiceDraftSettings()
        self._reminder_offsets = tuple(reminder_offsets)
        self._job_lock_timeout_ms = job_lock_timeout_ms

        self._handlers: dict[JobState, tuple[TriggerHandler, ...]] = {
            JobState.SCHEDULED: (self.notify_crew_scheduled,),
            JobState.IN_PROGRESS: (self.stamp_work_start,),
            JobState.COMPLETED: (self.draft_invoice, self.promote_client),
            JobState.INVOICED: (self.mark_invoice_sent,),
            JobState.PAID: (self.mark_invoice_paid,),
            JobState.CANCELLED: (self.demote_client, self.notify_cancellation),
        }

    def handlers_for(self, state: JobState) -> tuple[TriggerHandler, ...]:
        return self._handlers.get(state, ())

    def run(
        self,
        state: JobState,
        job_id: UUID,
        transition: TransitionRecord,
    ) -> list[AutomationTriggerError]:
        """
        Run every handler for ``state``.  Never raises.

        Returns:
            One AutomationTriggerError per failed handler (empty on success).
        """
        failures: list[AutomationTriggerError] = []
        for handler in self.handlers_for(state):
            trigger_name = handler.__name__
            try:
                handler(job_id, transition)
            except Exception as exc:
                logger.error(
                    "automation_trigger_failed",
                    extra={
                        "trigger": trigger_name,
                        "to_state": state.value,
                    },
                    exc_info=True,
                )
                failures.append(
                    AutomationTriggerError(state.value, str(job_id), f"{trigger_name}: {exc}")
                )
            else:
                logger.debug(
                    "automation_trigger_completed",
                    extra={"trigger": trigger_name, "to_state": state.value},
                )
        return failures

    # -- helpers -------------------------------------------------------------

    def _session(self):
        return session_scope(self._session_factory)

    def _lock_job(self, session: Session, job_id: UUID) -> Job:
        apply_lock_timeout(session, self._job_lock_timeout_ms)
        job = session.execute(
            select(Job)
            .where(Job.id == job_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if job is None:
            raise JobNotFoundError(str(job_id))
        return job

    def _set_client_category(
        self,
        session: Session,
        client_id: UUID,
        category: ClientCategory,
    ) -> bool:
        client = session.execute(
            select(Client).where(Client.id == client_id).with_for_update()
        ).scalar_one_or_none()
        if client is None or client.client_category == category.value:
            return False
        previous = client.client_category
        client.client_category = category.value
        logger.info(
            "client_category_updated",
            extra={
                "client_id": str(client_id),
                "from_category": previous,
                "to_category": category.value,
            },
        )
        return True

    # -- handlers ------------------------------------------------------------

    def notify_crew_scheduled(self, job_id: UUID, transition: TransitionRecord) -> None:
        with self._session() as session:
            job = JobSelector(session).get(job_id)
        for member in job.assigned_crew:
            self._crew_notifier.notify_crew_member(job, member, "job_scheduled")

    def stamp_work_start(self, job_id: UUID, transition: TransitionRecord) -> None:
        with self._session() as session:
            result = session.execute(
                update(Job)
                .where(Job.id == job_id, Job.work_start_time.is_(None))
                .values(work_start_time=self._clock.now())
            )
        if result.rowcount:
            logger.info("work_start_time_set", extra={"job_id": str(job_id)})

    def draft_invoice(self, job_id: UUID, transition: TransitionRecord) -> None:
        settings = self._invoice_settings
        with self._session() as session:
            job = self._lock_job(session, job_id)
            drafting = InvoiceDraftingService(
                session,
                self._allocator,
                clock=self._clock,
                payment_terms_days=settings.payment_terms_days,
                payment_terms_label=settings.payment_terms_label,
                default_line_description=settings.default_line_description,
                max_number_attempts=settings.max_number_attempts,
            )
            existing = drafting.existing_invoice_id(job)
            if existing is not None:
                if job.invoice_id is None:
                    job.invoice_id = existing
                logger.info(
                    "invoice_draft_skipped",
                    extra={"job_id": str(job_id), "invoice_id": str(existing)},
                )
                return
            invoice = drafting.draft_for_job(job)
            invoice_id = invoice.id
            invoice_number = invoice.invoice_number
            due_date = invoice.due_date

        self._reminder_scheduler.schedule_invoice_reminders(
            invoice_id,
            invoice_number,
            build_reminder_schedule(due_date, self._reminder_offsets),
        )

    def promote_client(self, job_id: UUID, transition: TransitionRecord) -> None:
        with self._session() as session:
            job = session.get(Job, job_id)
            if job is None or job.client_id is None:
                return
            self._set_client_category(session, job.client_id, ClientCategory.ACTIVE_CUSTOMER)

    def demote_client(self, job_id: UUID, transition: TransitionRecord) -> None:
        with self._session() as session:
            job = session.get(Job, job_id)
            if job is None or job.client_id is None:
                return
            if JobSelector(session).completed_job_count(job.client_id) > 0:
                return
            self._set_client_category(session, job.client_id, ClientCategory.POTENTIAL_CLIENT)

    def notify_cancellation(self, job_id: UUID, transition: TransitionRecord) -> None:
        with self._session() as session:
            job = JobSelector(session).get(job_id)
        for member in job.assigned_crew:
            self._crew_notifier.notify_crew_member(job, member, "job_cancelled")
        self._customer_notifier.notify_customer(job, "job_cancelled")

    def mark_invoice_sent(self, job_id: UUID, transition: TransitionRecord) -> None:
        with self._session() as session:
            invoice = self._linked_invoice(session, job_id)
            if invoice.status in (InvoiceStatus.SENT.value, InvoiceStatus.PAID.value):
                return
            invoice.status = InvoiceStatus.SENT.value
            invoice.sent_at = self._clock.now()
            logger.info(
                "invoice_status_changed",
                extra={"invoice_id": str(invoice.id), "invoice_status": invoice.status},
            )

    def mark_invoice_paid(self, job_id: UUID, transition: TransitionRecord) -> None:
        with self._session() as session:
            invoice = self._linked_invoice(session, job_id)
            invoice_id = invoice.id
            if invoice.status != InvoiceStatus.PAID.value:
                invoice.status = InvoiceStatus.PAID.value
                invoice.paid_at = self._clock.now()
                invoice.amount_paid = invoice.grand_total
                invoice.amount_due = Decimal("0.00")
                logger.info(
                    "invoice_status_changed",
                    extra={"invoice_id": str(invoice_id), "invoice_status": invoice.status},
                )
        self._reminder_scheduler.cancel_invoice_reminders(invoice_id)

    def _linked_invoice(self, session: Session, job_id: UUID) -> Invoice:
        job = session.get(Job, job_id)
        if job is None:
            raise JobNotFoundError(str(job_id))
        if job.invoice_id is None:
            raise InvoiceNotFoundError("<none>")
        invoice = session.execute(
            select(Invoice).where(Invoice.id == job.invoice_id).with_for_update()
        ).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(job.invoice_id))
        return invoice
