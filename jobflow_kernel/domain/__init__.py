"""
Pure domain layer.

State topology, validators, invoice arithmetic, reminder schedules, events
and DTOs, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time is read only through an injected Clock.
"""

from jobflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from jobflow_kernel.domain.dtos import (
    ChangeSource,
    EnrichedJobSnapshot,
    JobSnapshot,
    TransitionOption,
    TransitionOptions,
    TransitionOptionsView,
    TransitionRecord,
    TransitionResult,
    TransitionStatus,
    ValidationResult,
)
from jobflow_kernel.domain.events import DomainEvent, JobEventType
from jobflow_kernel.domain.job_states import (
    INITIAL_STATE,
    JOB_STATE_TRANSITIONS,
    STATE_NAMES,
    TERMINAL_JOB_STATES,
    JobState,
    allowed_transitions,
    is_transition_allowed,
    parse_state,
    state_name,
)
from jobflow_kernel.domain.validators import validate_destination

__all__ = [
    "ChangeSource",
    "Clock",
    "DeterministicClock",
    "DomainEvent",
    "EnrichedJobSnapshot",
    "INITIAL_STATE",
    "JOB_STATE_TRANSITIONS",
    "JobEventType",
    "JobSnapshot",
    "JobState",
    "STATE_NAMES",
    "SystemClock",
    "TERMINAL_JOB_STATES",
    "TransitionOption",
    "TransitionOptions",
    "TransitionOptionsView",
    "TransitionRecord",
    "TransitionResult",
    "TransitionStatus",
    "ValidationResult",
    "allowed_transitions",
    "is_transition_allowed",
    "parse_state",
    "state_name",
    "validate_destination",
]
