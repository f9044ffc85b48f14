"""
ORM-Level Immutability Enforcement for the job transition audit trail.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events for JobStateTransition:

    session.flush()
         |
         v
    [before_update event] --> _check_transition_update() --> ImmutabilityViolationError
         |                                                          ^
         v                                                          |
    [before_delete event] --> _check_transition_delete() -----------+
         |
         v
    SQL sent to database (only if checks pass)

If a check fails, ImmutabilityViolationError propagates out of flush and the
session must be rolled back.  The database is never modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                | When Immutable          | Why
----------------------|-------------------------|--------------------------------
JobStateTransition    | ALWAYS (from creation)  | Audit trail answers "who moved
                      |                         | this job, when, and why"

Bulk ``UPDATE``/``DELETE`` statements issued with ``session.execute()`` bypass
mapper events; nothing in the kernel issues them against the audit table.

===============================================================================
USAGE
===============================================================================

    from jobflow_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

    # Tests that need to violate the rule on purpose:
    from jobflow_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event

from jobflow_kernel.exceptions import ImmutabilityViolationError
from jobflow_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_transition_update(mapper, connection, target):
    """Prevent any updates to JobStateTransition records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "JobStateTransition",
            "entity_id": str(target.id),
            "job_id": str(target.job_id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="JobStateTransition",
        entity_id=str(target.id),
        reason="State transition records are append-only and cannot be modified",
    )


def _check_transition_delete(mapper, connection, target):
    """Prevent deletion of JobStateTransition records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "JobStateTransition",
            "entity_id": str(target.id),
            "job_id": str(target.job_id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="JobStateTransition",
        entity_id=str(target.id),
        reason="State transition records cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register the audit-trail immutability listeners.

    Idempotent: calling it twice does not stack duplicate listeners.
    """
    from jobflow_kernel.models.job_state_transition import JobStateTransition

    if not event.contains(JobStateTransition, "before_update", _check_transition_update):
        event.listen(JobStateTransition, "before_update", _check_transition_update)
    if not event.contains(JobStateTransition, "before_delete", _check_transition_delete):
        event.listen(JobStateTransition, "before_delete", _check_transition_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if it was never registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the immutability listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    from jobflow_kernel.models.job_state_transition import JobStateTransition

    _safe_remove_listener(JobStateTransition, "before_update", _check_transition_update)
    _safe_remove_listener(JobStateTransition, "before_delete", _check_transition_delete)
