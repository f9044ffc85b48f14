"""
Module: jobflow_kernel.models.job_state_transition
Responsibility: ORM persistence for the append-only job state audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (ORM listeners in db/immutability.py).
    - sequence is strictly increasing per job and unique with job_id.  It is
      allocated under the job row lock, so history order never depends on
      timestamp resolution.
    - from_state is NULL only for the creation row.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - IntegrityError on a duplicate (job_id, sequence), which only happens if
      a writer bypasses the job row lock.

Audit relevance:
    One row per successful state change, written in the same transaction as
    the status update.  Rejected transitions leave no row.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from jobflow_kernel.db.base import Base, UUIDString


class JobStateTransition(Base):
    """
    One recorded state change of a job.

    The ORM attribute ``transition_metadata`` maps to the ``metadata`` column
    (``metadata`` is reserved on declarative classes).
    """

    __tablename__ = "job_state_transitions"

    __table_args__ = (
        UniqueConstraint("job_id", "sequence", name="uq_job_transition_sequence"),
        Index("idx_job_transition_job", "job_id"),
        Index("idx_job_transition_created", "created_at"),
    )

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("jobs.id"),
        nullable=False,
    )

    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    from_state: Mapped[str | None] = mapped_column(String(30), nullable=True)
    to_state: Mapped[str] = mapped_column(String(30), nullable=False)

    changed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    changed_by_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    change_source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="manual",
    )

    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    transition_metadata: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<JobStateTransition job={self.job_id} #{self.sequence} "
            f"{self.from_state} -> {self.to_state}>"
        )
