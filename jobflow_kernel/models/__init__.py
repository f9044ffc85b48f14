"""SQLAlchemy ORM models for the jobflow kernel."""

from jobflow_kernel.models.client import Client, ClientCategory, Property
from jobflow_kernel.models.invoice import Invoice, InvoiceStatus
from jobflow_kernel.models.job import Job
from jobflow_kernel.models.job_form import JobForm, JobFormStatus
from jobflow_kernel.models.job_state_transition import JobStateTransition
from jobflow_kernel.models.quote import Quote

__all__ = [
    "Client",
    "ClientCategory",
    "Invoice",
    "InvoiceStatus",
    "Job",
    "JobForm",
    "JobFormStatus",
    "JobStateTransition",
    "Property",
    "Quote",
]
