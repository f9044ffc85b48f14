"""
Module: jobflow_kernel.models.invoice
Responsibility: ORM persistence for customer invoices drafted when a job is
    completed and advanced by the invoiced/paid triggers.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - invoice_number is unique (uq_invoice_number).  The allocator serialises
      numbering per year; this constraint is the backstop.
    - Monetary columns are Numeric(12, 2) and rounded to cents before insert.

Failure modes:
    - IntegrityError on duplicate invoice_number.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from jobflow_kernel.db.base import Base, UUIDString


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    VOID = "void"


class Invoice(Base):
    """
    A customer invoice.

    line_items is a JSON list of {"description", "quantity", "unit_price",
    "amount"} with amounts serialised as strings.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
        Index("idx_invoice_job", "job_id"),
        Index("idx_invoice_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)

    job_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("jobs.id"),
        nullable=True,
    )
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

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.DRAFT.value,
    )

    # Billing contact
    customer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    customer_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    line_items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Pricing
    subtotal: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount_percentage: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    grand_total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    amount_due: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    payment_terms: Mapped[str | None] = mapped_column(String(50), nullable=True)
    issue_date: Mapped[date | None] = mapped_column(nullable=True)
    due_date: Mapped[date | None] = mapped_column(nullable=True)

    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} ({self.status}) {self.grand_total}>"
