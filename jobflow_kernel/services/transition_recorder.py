"""
TransitionRecorder -- writes append-only JobStateTransition rows.

Responsibility:
    Allocates the next per-job sequence number and inserts the audit row.
    Used by JobStateMachine for every successful transition, and by the
    (out-of-kernel) job creation flow for the creation row.

Architecture position:
    Kernel > Services.  Flushes within the caller's transaction and never
    commits.

Invariants enforced:
    - The caller must hold the job row lock (SELECT ... FOR UPDATE) so that
      ``max(sequence) + 1`` cannot race.  uq_job_transition_sequence is the
      backstop.
    - created_at comes from the injected Clock.
    - notes and metadata are stored as plain JSON: UUIDs, Decimals and
      enums become strings, dates and datetimes ISO 8601 strings.
"""

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from jobflow_kernel.domain.clock import Clock, SystemClock
from jobflow_kernel.domain.dtos import ChangeSource, TransitionRecord, to_jsonable
from jobflow_kernel.domain.job_states import INITIAL_STATE, JobState
from jobflow_kernel.logging_config import get_logger
from jobflow_kernel.models.job_state_transition import JobStateTransition

logger = get_logger("services.transition_recorder")


class TransitionRecorder:
    """Inserts audit rows for job state changes."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _next_sequence(self, job_id: UUID) -> int:
        current = self._session.execute(
            select(func.max(JobStateTransition.sequence)).where(
                JobStateTransition.job_id == job_id
            )
        ).scalar_one()
        return (current or 0) + 1

    def record(
        self,
        job_id: UUID,
        from_state: JobState | None,
        to_state: JobState,
        *,
        changed_by: str | None = None,
        changed_by_role: str | None = None,
        change_source: ChangeSource = ChangeSource.MANUAL,
        reason: str | None = None,
        notes: Mapping[str, Any] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> TransitionRecord:
        """
        Insert one audit row and flush it.

        Returns:
            TransitionRecord for the inserted row.
        """
        row = JobStateTransition(
            job_id=job_id,
            sequence=self._next_sequence(job_id),
            from_state=from_state.value if from_state is not None else None,
            to_state=to_state.value,
            changed_by=changed_by,
            changed_by_role=changed_by_role,
            change_source=ChangeSource(change_source).value,
            reason=reason,
            notes=to_jsonable(notes) if notes is not None else None,
            transition_metadata=to_jsonable(metadata) if metadata is not None else None,
            created_at=self._clock.now(),
        )
        self._session.add(row)
        self._session.flush()

        logger.debug(
            "transition_recorded",
            extra={
                "job_id": str(job_id),
                "sequence": row.sequence,
                "from_state": row.from_state,
                "to_state": row.to_state,
            },
        )
        return TransitionRecord.from_model(row)

    def record_creation(
        self,
        job_id: UUID,
        *,
        changed_by: str | None = None,
        changed_by_role: str | None = None,
        change_source: ChangeSource = ChangeSource.SYSTEM,
        reason: str | None = "Job created",
    ) -> TransitionRecord:
        """Record the creation row (from_state NULL, to_state draft)."""
        return self.record(
            job_id,
            None,
            INITIAL_STATE,
            changed_by=changed_by,
            changed_by_role=changed_by_role,
            change_source=change_source,
            reason=reason,
        )
