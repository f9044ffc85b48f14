"""
JobStateMachine -- the single entry point for job status changes.

Responsibility:
    Validates and applies one transition per call: lock the job row, check
    topology, run destination validators, write status + audit row, commit.
    After commit, runs the automation triggers for the destination state and
    publishes at most one domain event.  Also exposes the read-side queries
    (history, allowed transitions).

Architecture position:
    Kernel > Services -- imperative shell.  Owns its sessions (one for the
    transition, one per trigger, one for event enrichment), all opened from
    the injected ``sessionmaker``.

Invariants enforced:
    - Status and audit row are written in one transaction; a job's status
      never changes without a matching JobStateTransition row.
    - The job row is locked (SELECT ... FOR UPDATE) before its status is
      read, so two concurrent requests on the same job serialise and the
      second is validated against the first's result.
    - Lock waits are bounded (``job_lock_timeout_ms``).
    - Nothing after commit can turn a committed transition into a failure:
      trigger and event errors are logged and contained.

Failure modes:
    Not found, unknown state, illegal transition, failed validation,
    malformed options or updates, lock timeout and store failure are all
    returned as a TransitionResult with ok == False.  Caller input is checked
    before the job is locked.  Only programming errors propagate.

Audit relevance:
    Every request logs ``transition_requested`` and either
    ``transition_completed`` or ``transition_rejected`` with ``duration_ms``,
    all under one correlation_id.
"""

import time
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from jobflow_kernel.db.engine import session_scope
from jobflow_kernel.db.locks import apply_lock_timeout, classify_store_error
from jobflow_kernel.domain.clock import Clock, SystemClock
from jobflow_kernel.domain.dtos import (
    JobSnapshot,
    TransitionOptions,
    TransitionOptionsView,
    TransitionRecord,
    TransitionResult,
    TransitionStatus,
)
from jobflow_kernel.domain.events import DomainEvent, event_type_for_state
from jobflow_kernel.domain.job_states import (
    JobState,
    is_transition_allowed,
    parse_state,
)
from jobflow_kernel.domain.validators import validate_destination
from jobflow_kernel.exceptions import (
    IllegalTransitionError,
    InvalidJobUpdateError,
    InvalidTransitionOptionError,
    JobflowKernelError,
    JobNotFoundError,
    LockTimeoutError,
    TransactionFailedError,
    TransitionError,
    TransitionValidationError,
    UnknownJobStateError,
)
from jobflow_kernel.logging_config import LogContext, get_logger
from jobflow_kernel.models.job import Job
from jobflow_kernel.selectors.job_selector import JobRelationsSelector, JobSelector
from jobflow_kernel.selectors.transition_history_selector import (
    TransitionHistorySelector,
)
from jobflow_kernel.services.automation_triggers import AutomationTriggers
from jobflow_kernel.services.collaborators import EventSink, LoggingEventSink
from jobflow_kernel.services.transition_recorder import TransitionRecorder

logger = get_logger("services.job_state_machine")

_REJECTION_STATUS: dict[type[JobflowKernelError], TransitionStatus] = {
    JobNotFoundError: TransitionStatus.JOB_NOT_FOUND,
    UnknownJobStateError: TransitionStatus.UNKNOWN_STATE,
    IllegalTransitionError: TransitionStatus.ILLEGAL_TRANSITION,
    TransitionValidationError: TransitionStatus.VALIDATION_FAILED,
    InvalidJobUpdateError: TransitionStatus.INVALID_UPDATE,
    InvalidTransitionOptionError: TransitionStatus.INVALID_UPDATE,
    LockTimeoutError: TransitionStatus.LOCK_TIMEOUT,
    TransactionFailedError: TransitionStatus.TRANSACTION_FAILED,
}


def _rejection_status(exc: JobflowKernelError) -> TransitionStatus:
    for klass in type(exc).__mro__:
        status = _REJECTION_STATUS.get(klass)
        if status is not None:
            return status
    return TransitionStatus.TRANSACTION_FAILED


def _coerce_job_id(job_id: UUID | str) -> UUID:
    if isinstance(job_id, UUID):
        return job_id
    try:
        return UUID(str(job_id))
    except ValueError:
        raise JobNotFoundError(str(job_id)) from None


class JobStateMachine:
    """
    Transition orchestrator.

    Usage:
        machine = JobStateMachine(get_session_factory(), clock=SystemClock())
        result = machine.transition(job_id, "scheduled",
                                    TransitionOptions(actor_id="dispatcher-1"))
        if not result.ok:
            print(result.errors)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        triggers: AutomationTriggers | None = None,
        event_sink: EventSink | None = None,
        job_lock_timeout_ms: int = 5000,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._triggers = triggers or AutomationTriggers(session_factory, clock=self._clock)
        self._event_sink = event_sink or LoggingEventSink()
        self._job_lock_timeout_ms = job_lock_timeout_ms

    # -- write side ----------------------------------------------------------

    def transition(
        self,
        job_id: UUID | str,
        to_state: JobState | str,
        options: TransitionOptions | None = None,
    ) -> TransitionResult:
        """
        Move a job to ``to_state``.

        Returns:
            TransitionResult -- TRANSITIONED with the committed job and audit
            row, or a rejection status with every reason in ``errors``.
        """
        options = options or TransitionOptions()
        requested = to_state.value if isinstance(to_state, JobState) else str(to_state)
        t0 = time.monotonic()

        with LogContext.bind(
            correlation_id=str(uuid4()),
            job_id=str(job_id),
            actor_id=options.actor_id,
        ):
            logger.info("transition_requested", extra={"to_state": requested})
            try:
                job_uuid = _coerce_job_id(job_id)
                target = parse_state(to_state)
                if target is None:
                    raise UnknownJobStateError(requested)
                options = options.normalized()
                committed, record = self._apply(job_uuid, target, options)
            except JobflowKernelError as exc:
                return self._rejected(job_id, exc, t0)

            with LogContext.bind(transition_id=str(record.id)):
                failures = self._triggers.run(target, job_uuid, record)
                job = self._reload(job_uuid) or committed
                self._publish(target, job_uuid, record)

                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.info(
                    "transition_completed",
                    extra={
                        "from_state": record.from_state,
                        "to_state": record.to_state,
                        "sequence": record.sequence,
                        "trigger_failures": len(failures),
                        "duration_ms": duration_ms,
                    },
                )
            return TransitionResult(
                status=TransitionStatus.TRANSITIONED,
                job_id=job_uuid,
                job=job,
                transition=record,
            )

    def _apply(
        self,
        job_id: UUID,
        target: JobState,
        options: TransitionOptions,
    ) -> tuple[JobSnapshot, TransitionRecord]:
        """The locked, single-transaction part of a transition."""
        session = self._session_factory()
        try:
            apply_lock_timeout(session, self._job_lock_timeout_ms)
            job = session.execute(
                select(Job)
                .where(Job.id == job_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if job is None:
                raise JobNotFoundError(str(job_id))

            current = parse_state(job.status)
            if current is None or not is_transition_allowed(current, target):
                raise IllegalTransitionError(str(job_id), job.status, target.value)

            candidate = JobSnapshot.from_model(job).with_updates(options.job_updates)
            verdict = validate_destination(candidate, target, JobRelationsSelector(session))
            if not verdict:
                raise TransitionValidationError(str(job_id), target.value, list(verdict.errors))

            for field_name, value in options.job_updates.items():
                setattr(job, field_name, list(value) if isinstance(value, tuple) else value)
            job.status = target.value
            job.last_state_change_at = self._clock.now()

            record = TransitionRecorder(session, self._clock).record(
                job_id,
                current,
                target,
                changed_by=options.actor_id,
                changed_by_role=options.actor_role,
                change_source=options.source,
                reason=options.reason,
                notes=options.notes,
                metadata=options.metadata,
            )
            snapshot = JobSnapshot.from_model(job)
            session.commit()
            return snapshot, record
        except JobflowKernelError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise classify_store_error(
                exc,
                operation="job_transition",
                resource=f"job:{job_id}",
                timeout_ms=self._job_lock_timeout_ms,
            ) from exc
        finally:
            session.close()

    def _rejected(
        self,
        job_id: UUID | str,
        exc: JobflowKernelError,
        t0: float,
    ) -> TransitionResult:
        status = _rejection_status(exc)
        errors = exc.errors if isinstance(exc, TransitionError) else [str(exc)]
        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        log = logger.warning if exc.retryable else logger.info
        log(
            "transition_rejected",
            extra={
                "status": status.value,
                "error_code": exc.code,
                "errors": errors,
                "retryable": exc.retryable,
                "duration_ms": duration_ms,
            },
        )
        return TransitionResult(
            status=status,
            job_id=job_id,
            errors=tuple(errors),
            error_code=exc.code,
            retryable=exc.retryable,
        )

    # -- after commit --------------------------------------------------------

    def _reload(self, job_id: UUID) -> JobSnapshot | None:
        try:
            with session_scope(self._session_factory) as session:
                return JobSelector(session).find(job_id)
        except SQLAlchemyError:
            logger.warning("job_reload_failed", exc_info=True)
            return None

    def _publish(self, target: JobState, job_id: UUID, record: TransitionRecord) -> None:
        event_type = event_type_for_state(target)
        if event_type is None:
            return
        try:
            with session_scope(self._session_factory) as session:
                enriched = JobSelector(session).enriched(job_id)
            event = DomainEvent(
                event_type=event_type,
                job_id=job_id,
                job=enriched.to_dict(),
                transition=self._transition_payload(record),
                occurred_at=self._clock.now(),
            )
            self._event_sink.publish(event)
        except Exception:
            logger.error(
                "domain_event_emit_failed",
                extra={"event_type": event_type.value},
                exc_info=True,
            )

    @staticmethod
    def _transition_payload(record: TransitionRecord) -> dict[str, Any]:
        return {
            "from": record.from_state,
            "to": record.to_state,
            "actor": record.changed_by,
            "reason": record.reason,
        }

    # -- read side -----------------------------------------------------------

    def history(self, job_id: UUID | str) -> list[TransitionRecord]:
        """Audit trail, newest first.  Raises JobNotFoundError."""
        job_uuid = _coerce_job_id(job_id)
        with session_scope(self._session_factory) as session:
            return TransitionHistorySelector(session).history(job_uuid)

    def allowed_transitions_for(self, job_id: UUID | str) -> TransitionOptionsView:
        """Reachable next states with blocking reasons.  Raises JobNotFoundError."""
        job_uuid = _coerce_job_id(job_id)
        with session_scope(self._session_factory) as session:
            return TransitionHistorySelector(session).allowed_transitions_for(job_uuid)
