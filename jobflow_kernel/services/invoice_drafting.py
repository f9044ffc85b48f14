"""
InvoiceDraftingService -- synthesises a draft invoice for a completed job.

Responsibility:
    Resolves the billing contact, builds line items and totals from the
    job's quote, allocates an invoice number, inserts the invoice and links
    it to the job.  Runs inside the completion trigger's transaction; never
    commits.

Invariants enforced:
    - One invoice per job: the caller holds the job row lock, and
      ``existing_invoice_id`` is checked before anything is drafted.
    - Allocation and insert happen in the same transaction, under the
      allocator's year lock.
    - On a unique-constraint collision the insert is retried inside a
      savepoint with a fresh fallback number, up to ``max_number_attempts``.

Failure modes:
    - InvoiceNumberCollisionError once every attempt collided.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobflow_kernel.domain.clock import Clock, SystemClock
from jobflow_kernel.domain.invoice_math import (
    InvoiceLine,
    build_invoice_lines,
    calculate_invoice_totals,
)
from jobflow_kernel.exceptions import InvoiceNumberCollisionError
from jobflow_kernel.logging_config import get_logger
from jobflow_kernel.models.client import Client, Property
from jobflow_kernel.models.invoice import Invoice, InvoiceStatus
from jobflow_kernel.models.job import Job
from jobflow_kernel.models.quote import Quote
from jobflow_kernel.services.invoice_number_allocator import InvoiceNumberAllocator

logger = get_logger("services.invoice_drafting")


def _join_address(*parts: str | None) -> str | None:
    text = ", ".join(p.strip() for p in parts if p and p.strip())
    return text or None


class InvoiceDraftingService:
    """Drafts invoices for completed jobs."""

    def __init__(
        self,
        session: Session,
        allocator: InvoiceNumberAllocator,
        clock: Clock | None = None,
        payment_terms_days: int = 30,
        payment_terms_label: str = "Net 30",
        default_line_description: str = "Tree Service",
        max_number_attempts: int = 3,
    ):
        self._session = session
        self._allocator = allocator
        self._clock = clock or SystemClock()
        self._payment_terms_days = payment_terms_days
        self._payment_terms_label = payment_terms_label
        self._default_line_description = default_line_description
        self._max_number_attempts = max(1, max_number_attempts)

    def existing_invoice_id(self, job: Job) -> UUID | None:
        """The job's invoice, by link or by back-reference."""
        if job.invoice_id is not None:
            return job.invoice_id
        return self._session.execute(
            select(Invoice.id).where(Invoice.job_id == job.id).limit(1)
        ).scalar_one_or_none()

    def _billing_contact(self, job: Job) -> dict[str, str | None]:
        client = self._session.get(Client, job.client_id) if job.client_id else None
        prop = self._session.get(Property, job.property_id) if job.property_id else None

        name = (client.display_name if client else None) or job.customer_name
        email = (client.primary_email if client else None) or job.customer_email
        phone = (client.primary_phone if client else None) or job.customer_phone

        address = None
        if client is not None and client.billing_address_line1:
            address = _join_address(
                client.billing_address_line1,
                client.billing_address_line2,
                client.billing_city,
                client.billing_state,
                client.billing_zip,
            )
        elif prop is not None:
            address = _join_address(
                prop.address_line1,
                prop.address_line2,
                prop.city,
                prop.state,
                prop.zip_code,
            )
        return {
            "customer_name": name,
            "customer_email": email,
            "customer_phone": phone,
            "customer_address": address,
        }

    def _lines_and_quote(self, job: Job) -> tuple[list[InvoiceLine], Quote | None]:
        quote = self._session.get(Quote, job.quote_id) if job.quote_id else None
        lines: list[InvoiceLine] = []
        if quote is not None:
            lines = build_invoice_lines(
                quote.line_items,
                quote.stump_grinding_price,
                quote.add_ons,
                default_description=self._default_line_description,
            )
        if not lines:
            lines = [
                InvoiceLine(
                    description=self._default_line_description,
                    quantity=Decimal("1"),
                    unit_price=Decimal("0.00"),
                    amount=Decimal("0.00"),
                )
            ]
        return lines, quote

    def draft_for_job(self, job: Job) -> Invoice:
        """
        Insert a draft invoice for ``job`` and link it.

        Preconditions: the caller holds the job row lock and has checked
            ``existing_invoice_id(job)`` is None.

        Raises:
            InvoiceNumberCollisionError: If every numbering attempt collided.
        """
        lines, quote = self._lines_and_quote(job)
        totals = calculate_invoice_totals(
            (line.amount for line in lines),
            discount_amount=quote.discount_amount if quote else 0,
            discount_percentage=quote.discount_percentage if quote else 0,
            tax_rate=quote.tax_rate if quote else 0,
        )
        issue_date = self._clock.today()

        fields = dict(
            job_id=job.id,
            client_id=job.client_id,
            property_id=job.property_id,
            quote_id=job.quote_id,
            status=InvoiceStatus.DRAFT.value,
            line_items=[line.to_dict() for line in lines],
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            discount_percentage=totals.discount_percentage,
            tax_rate=totals.tax_rate,
            tax_amount=totals.tax_amount,
            total_amount=totals.total_amount,
            grand_total=totals.grand_total,
            amount_paid=Decimal("0.00"),
            amount_due=totals.grand_total,
            payment_terms=self._payment_terms_label,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=self._payment_terms_days),
            **self._billing_contact(job),
        )

        invoice_number = self._allocator.allocate(self._session)
        attempt = 1
        while True:
            invoice = Invoice(invoice_number=invoice_number, **fields)
            savepoint = self._session.begin_nested()
            try:
                self._session.add(invoice)
                self._session.flush()
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                logger.warning(
                    "invoice_number_collision",
                    extra={
                        "job_id": str(job.id),
                        "invoice_number": invoice_number,
                        "attempt": attempt,
                    },
                )
                if attempt == self._max_number_attempts:
                    raise InvoiceNumberCollisionError(
                        str(job.id), attempt, invoice_number
                    ) from None
                invoice_number = self._allocator.fallback_number(attempt)
                attempt += 1
                continue

            job.invoice_id = invoice.id
            self._session.flush()
            logger.info(
                "invoice_drafted",
                extra={
                    "job_id": str(job.id),
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "grand_total": invoice.grand_total,
                    "due_date": invoice.due_date,
                },
            )
            return invoice
