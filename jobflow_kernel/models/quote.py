"""
Module: jobflow_kernel.models.quote
Responsibility: ORM persistence for the priced quote a job was sold from.
    The completion trigger reads it to build invoice line items and pricing.
Architecture position: Kernel > Models.  May import from db/base.py only.

line_items is a JSON list of objects:
    {"description": str, "price": number?, "quantity": number?,
     "unit_price": number?, "selected": bool}
add_ons is a JSON list of {"description"/"name": str, "price": number}.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from jobflow_kernel.db.base import Base, UUIDString


class Quote(Base):
    """A client quote with selectable line items and pricing modifiers."""

    __tablename__ = "quotes"

    quote_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

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

    line_items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    stump_grinding_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    add_ons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Pricing modifiers; a positive percentage takes precedence over the amount
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount_percentage: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Quote {self.quote_number or self.id}>"
