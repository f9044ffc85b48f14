"""
Module: jobflow_kernel.models.job_form
Responsibility: ORM persistence for forms attached to a job (site safety
    sheets, customer sign-offs).  Every form must be completed before work can
    start.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from jobflow_kernel.db.base import Base, UUIDString


class JobFormStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class JobForm(Base):
    """A form attached to a job."""

    __tablename__ = "job_forms"

    __table_args__ = (
        Index("idx_job_form_job", "job_id"),
    )

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("jobs.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobFormStatus.PENDING.value,
    )

    def __repr__(self) -> str:
        return f"<JobForm {self.name} ({self.status})>"
