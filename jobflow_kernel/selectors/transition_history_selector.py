"""
Module: jobflow_kernel.selectors.transition_history_selector
Responsibility: Read a job's state audit trail and compute which next states
    are currently reachable (and what blocks the others).
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - history() is ordered by the per-job sequence, newest first, so the
      to_state of row k equals the from_state of row k-1.
    - Both queries raise JobNotFoundError for unknown jobs rather than
      returning an empty answer.
"""

from uuid import UUID

from sqlalchemy import select

from jobflow_kernel.domain.dtos import (
    TransitionOption,
    TransitionOptionsView,
    TransitionRecord,
)
from jobflow_kernel.domain.job_states import (
    JobState,
    allowed_transitions,
    state_name,
)
from jobflow_kernel.domain.validators import validate_destination
from jobflow_kernel.exceptions import JobNotFoundError
from jobflow_kernel.models.job import Job
from jobflow_kernel.models.job_state_transition import JobStateTransition
from jobflow_kernel.selectors.base import BaseSelector
from jobflow_kernel.selectors.job_selector import JobRelationsSelector, JobSelector

# Stable display order for transition options
_STATE_ORDER = {state: index for index, state in enumerate(JobState)}


class TransitionHistorySelector(BaseSelector):
    """Audit trail and transition-options queries."""

    def history(self, job_id: UUID) -> list[TransitionRecord]:
        """
        All recorded transitions for a job, newest first.

        Raises:
            JobNotFoundError: If no such job exists.
        """
        if self.session.get(Job, job_id) is None:
            raise JobNotFoundError(str(job_id))

        rows = self.session.execute(
            select(JobStateTransition)
            .where(JobStateTransition.job_id == job_id)
            .order_by(JobStateTransition.sequence.desc())
        ).scalars().all()
        return [TransitionRecord.from_model(row) for row in rows]

    def allowed_transitions_for(self, job_id: UUID) -> TransitionOptionsView:
        """
        Every topologically reachable next state with its validator verdict.

        Raises:
            JobNotFoundError: If no such job exists.
        """
        job = JobSelector(self.session).get(job_id)
        reader = JobRelationsSelector(self.session)

        options = []
        for target in sorted(allowed_transitions(job.status), key=_STATE_ORDER.__getitem__):
            verdict = validate_destination(job, target, reader)
            options.append(
                TransitionOption(
                    state=target,
                    state_name=state_name(target),
                    allowed=verdict.is_valid,
                    blocked_reasons=verdict.errors,
                )
            )

        return TransitionOptionsView(
            job_id=job.id,
            current_state=job.status,
            current_state_name=state_name(job.status),
            transitions=tuple(options),
        )
