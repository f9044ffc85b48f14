"""
Module: jobflow_kernel.models.client
Responsibility: ORM persistence for clients and the properties where work is
    done.  Both are read by validators and triggers; the only field the kernel
    ever writes is Client.client_category.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - client_category is one of ClientCategory.  Automation moves it between
      POTENTIAL_CLIENT and ACTIVE_CUSTOMER and only writes when it differs.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from jobflow_kernel.db.base import Base, UUIDString


class ClientCategory(str, Enum):
    """Sales classification of a client."""

    POTENTIAL_CLIENT = "potential_client"
    ACTIVE_CUSTOMER = "active_customer"


class Client(Base):
    """
    A person or business the company quotes and performs work for.

    Billing address fields take precedence over the property address when an
    invoice is drafted.
    """

    __tablename__ = "clients"

    __table_args__ = (
        Index("idx_client_category", "client_category"),
    )

    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    company_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    primary_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    primary_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Billing address
    billing_address_line1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    billing_address_line2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    billing_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    billing_state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    billing_zip: Mapped[str | None] = mapped_column(String(20), nullable=True)

    client_category: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=ClientCategory.POTENTIAL_CLIENT.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    @property
    def display_name(self) -> str | None:
        """Person name if any part is present, else company name."""
        parts = [p for p in (self.first_name, self.last_name) if p]
        if parts:
            return " ".join(parts)
        return self.company_name

    def __repr__(self) -> str:
        return f"<Client {self.id}: {self.display_name} ({self.client_category})>"


class Property(Base):
    """A service address belonging to a client."""

    __tablename__ = "properties"

    client_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("clients.id"),
        nullable=True,
    )

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    address_line1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address_line2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Property {self.id}: {self.address_line1}>"
