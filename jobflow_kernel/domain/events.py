"""
Domain events published after a job reaches certain states.

Only four destination states produce an event.  Consumers (email/SMS
delivery, analytics) subscribe to the event stream; the kernel does not know
who they are.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from jobflow_kernel.domain.job_states import JobState


class JobEventType(str, Enum):
    JOB_SCHEDULED = "job_scheduled"
    JOB_STARTED = "job_started"
    JOB_COMPLETED = "job_completed"
    JOB_CANCELLED = "job_cancelled"


STATE_EVENT_TYPES: dict[JobState, JobEventType] = {
    JobState.SCHEDULED: JobEventType.JOB_SCHEDULED,
    JobState.IN_PROGRESS: JobEventType.JOB_STARTED,
    JobState.COMPLETED: JobEventType.JOB_COMPLETED,
    JobState.CANCELLED: JobEventType.JOB_CANCELLED,
}


def event_type_for_state(state: JobState) -> JobEventType | None:
    """The event published on arrival at ``state``, or None."""
    return STATE_EVENT_TYPES.get(state)


@dataclass(frozen=True)
class DomainEvent:
    """
    One published job event.

    ``job`` is the enriched snapshot (job + client + property + quote pricing
    + invoice) as a plain dict; ``transition`` carries from/to/actor/reason.
    """

    event_type: JobEventType
    job_id: UUID
    job: dict[str, Any]
    transition: dict[str, Any]
    occurred_at: datetime
    event_id: UUID = field(default_factory=uuid4)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready envelope for external consumers."""
        return {
            "event_id": str(self.event_id),
            "type": self.event_type.value,
            "job_id": str(self.job_id),
            "job": self.job,
            "transition": self.transition,
            "occurred_at": self.occurred_at.isoformat(),
        }
