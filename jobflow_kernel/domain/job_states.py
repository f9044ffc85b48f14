"""
Job lifecycle states and the transition table.

Responsibility:
    Declares the twelve operational states of a job and the directed graph of
    legal moves between them.  Everything else in the kernel asks this module
    "may a job in state X move to state Y?".

Architecture position:
    Kernel > Domain -- pure, zero I/O.  No imports from db/, services/,
    selectors/, or outer layers.

Invariants enforced:
    - Every JobState has an entry in JOB_STATE_TRANSITIONS (checked at import).
    - PAID and CANCELLED are terminal: their successor sets are empty.
    - Unknown state strings are never allowed in either direction.
"""

from enum import Enum, unique


@unique
class JobState(str, Enum):
    """Operational state of a job."""

    DRAFT = "draft"
    NEEDS_PERMIT = "needs_permit"
    WAITING_ON_CLIENT = "waiting_on_client"
    SCHEDULED = "scheduled"
    EN_ROUTE = "en_route"
    ON_SITE = "on_site"
    WEATHER_HOLD = "weather_hold"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    INVOICED = "invoiced"
    PAID = "paid"
    CANCELLED = "cancelled"


INITIAL_STATE = JobState.DRAFT


# Allowed transitions (from -> set of valid next states)
JOB_STATE_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.DRAFT: frozenset({
        JobState.NEEDS_PERMIT,
        JobState.WAITING_ON_CLIENT,
        JobState.SCHEDULED,
        JobState.CANCELLED,
    }),
    JobState.NEEDS_PERMIT: frozenset({
        JobState.WAITING_ON_CLIENT,
        JobState.SCHEDULED,
        JobState.CANCELLED,
    }),
    JobState.WAITING_ON_CLIENT: frozenset({
        JobState.SCHEDULED,
        JobState.CANCELLED,
    }),
    JobState.SCHEDULED: frozenset({
        JobState.EN_ROUTE,
        JobState.IN_PROGRESS,
        JobState.WEATHER_HOLD,
        JobState.CANCELLED,
    }),
    JobState.EN_ROUTE: frozenset({
        JobState.ON_SITE,
        JobState.SCHEDULED,
        JobState.WEATHER_HOLD,
        JobState.CANCELLED,
    }),
    JobState.ON_SITE: frozenset({
        JobState.IN_PROGRESS,
        JobState.SCHEDULED,
        JobState.WEATHER_HOLD,
        JobState.CANCELLED,
    }),
    JobState.WEATHER_HOLD: frozenset({
        JobState.SCHEDULED,
        JobState.CANCELLED,
    }),
    JobState.IN_PROGRESS: frozenset({
        JobState.COMPLETED,
        JobState.WEATHER_HOLD,
        JobState.CANCELLED,
    }),
    JobState.COMPLETED: frozenset({JobState.INVOICED}),
    # invoiced -> completed covers invoice void / correction
    JobState.INVOICED: frozenset({JobState.PAID, JobState.COMPLETED}),
    # Terminal states
    JobState.PAID: frozenset(),
    JobState.CANCELLED: frozenset(),
}

TERMINAL_JOB_STATES: frozenset[JobState] = frozenset(
    state for state, targets in JOB_STATE_TRANSITIONS.items() if not targets
)

STATE_NAMES: dict[JobState, str] = {
    JobState.DRAFT: "Draft",
    JobState.NEEDS_PERMIT: "Needs Permit",
    JobState.WAITING_ON_CLIENT: "Waiting on Client",
    JobState.SCHEDULED: "Scheduled",
    JobState.EN_ROUTE: "En Route",
    JobState.ON_SITE: "On Site",
    JobState.WEATHER_HOLD: "Weather Hold",
    JobState.IN_PROGRESS: "In Progress",
    JobState.COMPLETED: "Completed",
    JobState.INVOICED: "Invoiced",
    JobState.PAID: "Paid",
    JobState.CANCELLED: "Cancelled",
}

_missing = set(JobState) - set(JOB_STATE_TRANSITIONS)
if _missing:
    raise RuntimeError(
        f"JOB_STATE_TRANSITIONS is missing states: {sorted(s.value for s in _missing)}"
    )
_unnamed = set(JobState) - set(STATE_NAMES)
if _unnamed:
    raise RuntimeError(
        f"STATE_NAMES is missing states: {sorted(s.value for s in _unnamed)}"
    )
del _missing, _unnamed


def parse_state(value: "JobState | str") -> JobState | None:
    """Return the JobState for ``value``, or None if it names no state."""
    if isinstance(value, JobState):
        return value
    try:
        return JobState(value)
    except ValueError:
        return None


def allowed_transitions(from_state: "JobState | str") -> frozenset[JobState]:
    """Successor states of ``from_state``; empty for terminal or unknown states."""
    current = parse_state(from_state)
    if current is None:
        return frozenset()
    return JOB_STATE_TRANSITIONS[current]


def is_transition_allowed(from_state: "JobState | str", to_state: "JobState | str") -> bool:
    """Check if a state transition is valid."""
    target = parse_state(to_state)
    if target is None:
        return False
    return target in allowed_transitions(from_state)


def state_name(state: "JobState | str") -> str:
    """Human-readable name, falling back to the raw value for unknown states."""
    parsed = parse_state(state)
    if parsed is None:
        return str(state)
    return STATE_NAMES[parsed]
