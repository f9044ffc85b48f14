"""
Job read side: snapshots, related-aggregate lookups for validators, and the
enriched snapshot carried by job events.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from jobflow_kernel.domain.dtos import EnrichedJobSnapshot, JobSnapshot
from jobflow_kernel.exceptions import JobNotFoundError
from jobflow_kernel.models.client import Client, Property
from jobflow_kernel.models.invoice import Invoice
from jobflow_kernel.models.job import Job
from jobflow_kernel.models.job_form import JobForm, JobFormStatus
from jobflow_kernel.models.quote import Quote
from jobflow_kernel.selectors.base import BaseSelector

# Jobs that count as "completed" for client categorisation
COMPLETED_JOB_STATUSES = ("completed", "invoiced", "paid")


class JobRelationsSelector(BaseSelector):
    """
    Read-only access to aggregates related to a job.

    Implements the JobRelationsReader protocol used by domain validators.
    """

    def invoice_exists(self, invoice_id: UUID) -> bool:
        found = self.session.execute(
            select(Invoice.id).where(Invoice.id == invoice_id)
        ).scalar_one_or_none()
        return found is not None

    def incomplete_form_names(self, job_id: UUID) -> list[str]:
        rows = self.session.execute(
            select(JobForm.name)
            .where(
                JobForm.job_id == job_id,
                JobForm.status != JobFormStatus.COMPLETED.value,
            )
            .order_by(JobForm.name)
        ).scalars().all()
        return list(rows)


class JobSelector(BaseSelector):
    """Job snapshots and client job counts."""

    def find(self, job_id: UUID) -> JobSnapshot | None:
        job = self.session.get(Job, job_id)
        if job is None:
            return None
        return JobSnapshot.from_model(job)

    def get(self, job_id: UUID) -> JobSnapshot:
        """
        Raises:
            JobNotFoundError: If no such job exists.
        """
        snapshot = self.find(job_id)
        if snapshot is None:
            raise JobNotFoundError(str(job_id))
        return snapshot

    def completed_job_count(self, client_id: UUID) -> int:
        return self.session.execute(
            select(func.count(Job.id)).where(
                Job.client_id == client_id,
                Job.status.in_(COMPLETED_JOB_STATUSES),
            )
        ).scalar_one()

    def enriched(self, job_id: UUID) -> EnrichedJobSnapshot:
        """
        Job plus client, property, quote pricing and invoice.

        Raises:
            JobNotFoundError: If no such job exists.
        """
        job = self.get(job_id)
        return EnrichedJobSnapshot(
            job=job,
            client=self._client_info(job.client_id),
            property=self._property_info(job.property_id),
            quote_pricing=self._quote_pricing(job.quote_id),
            invoice=self._invoice_info(job.invoice_id),
        )

    def _client_info(self, client_id: UUID | None) -> dict[str, Any] | None:
        if client_id is None:
            return None
        client = self.session.get(Client, client_id)
        if client is None:
            return None
        return {
            "id": client.id,
            "name": client.display_name,
            "email": client.primary_email,
            "phone": client.primary_phone,
            "category": client.client_category,
        }

    def _property_info(self, property_id: UUID | None) -> dict[str, Any] | None:
        if property_id is None:
            return None
        prop = self.session.get(Property, property_id)
        if prop is None:
            return None
        return {
            "id": prop.id,
            "name": prop.name,
            "address_line1": prop.address_line1,
            "address_line2": prop.address_line2,
            "city": prop.city,
            "state": prop.state,
            "zip_code": prop.zip_code,
        }

    def _quote_pricing(self, quote_id: UUID | None) -> dict[str, Any] | None:
        if quote_id is None:
            return None
        quote = self.session.get(Quote, quote_id)
        if quote is None:
            return None
        return {
            "id": quote.id,
            "quote_number": quote.quote_number,
            "line_items": quote.line_items,
            "stump_grinding_price": quote.stump_grinding_price,
            "add_ons": quote.add_ons,
            "discount_amount": quote.discount_amount,
            "discount_percentage": quote.discount_percentage,
            "tax_rate": quote.tax_rate,
        }

    def _invoice_info(self, invoice_id: UUID | None) -> dict[str, Any] | None:
        if invoice_id is None:
            return None
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            return None
        return {
            "id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "status": invoice.status,
            "grand_total": invoice.grand_total,
            "amount_due": invoice.amount_due,
            "due_date": invoice.due_date,
        }
