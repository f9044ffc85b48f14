"""
Module: jobflow_kernel.models.job
Responsibility: ORM persistence for a field-service job and the operational
    data its lifecycle rules read (schedule, crew, safety analysis, permit,
    deposit, work times, checklist, invoice link, payment).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - status is always one of the JobState values.  Only JobStateMachine
      writes status; automation triggers may write work_start_time and
      invoice_id but never status.
    - last_state_change_at is stamped by the same transaction that writes
      status.

Failure modes:
    - None at the ORM level; lifecycle rules live in domain/validators.py.

Audit relevance:
    Every status change is mirrored by one append-only JobStateTransition row
    committed in the same transaction.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from jobflow_kernel.db.base import Base, UUIDString


class Job(Base):
    """
    A unit of field work for a client at a property.

    JSON columns are replaced wholesale rather than mutated in place, so the
    ORM sees every change.

    completion_checklist is a list of {"item": str, "checked": bool}.
    assigned_crew is an ordered list of worker identities.
    """

    __tablename__ = "jobs"

    __table_args__ = (
        Index("idx_job_status", "status"),
        Index("idx_job_client", "client_id"),
    )

    job_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="draft",
    )

    last_state_change_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # References
    client_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("clients.id"),
        nullable=True,
    )
    property_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("properties.id"),
        nullable=True,
    )
    quote_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("quotes.id"),
        nullable=True,
    )

    # Denormalised customer contact, used when no client record resolves
    customer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Scheduling
    scheduled_date: Mapped[date | None] = mapped_column(nullable=True)
    assigned_crew: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Job Hazard Analysis
    jha_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    jha: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    jha_acknowledged_at: Mapped[datetime | None] = mapped_column(nullable=True)
    jha_acknowledged_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Permit and deposit gates
    permit_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    permit_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    deposit_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deposit_status: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Work record
    work_start_time: Mapped[datetime | None] = mapped_column(nullable=True)
    work_end_time: Mapped[datetime | None] = mapped_column(nullable=True)
    completion_checklist: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Billing; not a foreign key, the invoiced-state rule checks it resolves
    invoice_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    payment_received_at: Mapped[datetime | None] = mapped_column(nullable=True)

    weather_hold_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Job {self.job_number or self.id} ({self.status})>"
