"""
Per-destination business preconditions for job transitions.

Responsibility:
    One guard per destination state.  A guard reads the job (with any
    caller-supplied field updates already overlaid) plus related aggregates
    through a read-only JobRelationsReader, and returns every unmet
    precondition as a human-readable reason.

Architecture position:
    Kernel > Domain.  No I/O of its own; the reader is implemented by
    selectors/job_selector.py.

Invariants enforced:
    - STATE_VALIDATORS has an entry for every JobState (checked at import).
    - All applicable rules are evaluated; a guard never stops at the first
      failure.
    - Topological legality is NOT checked here; that belongs to
      domain/job_states.py and is applied first by the state machine.
"""

from typing import Callable, Protocol
from uuid import UUID

from jobflow_kernel.domain.dtos import JobSnapshot, ValidationResult
from jobflow_kernel.domain.job_states import JobState


class JobRelationsReader(Protocol):
    """Read-only access to aggregates related to a job."""

    def invoice_exists(self, invoice_id: UUID) -> bool:
        ...

    def incomplete_form_names(self, job_id: UUID) -> list[str]:
        """Names of forms attached to the job whose status is not completed."""
        ...


Validator = Callable[[JobSnapshot, JobRelationsReader], ValidationResult]

PERMIT_APPROVED = "approved"
DEPOSIT_SATISFIED = frozenset({"received", "waived"})


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _schedule_and_crew_errors(job: JobSnapshot, activity: str) -> list[str]:
    errors = []
    if job.scheduled_date is None:
        errors.append(f"Job must be scheduled before {activity}")
    if not job.assigned_crew:
        errors.append(f"Crew must be assigned before {activity}")
    return errors


def _topology_only(job: JobSnapshot, reader: JobRelationsReader) -> ValidationResult:
    return ValidationResult.success()


def _validate_scheduled(job: JobSnapshot, reader: JobRelationsReader) -> ValidationResult:
    errors = []
    if job.scheduled_date is None:
        errors.append("scheduled_date is required to schedule a job")
    if not job.assigned_crew:
        errors.append("assigned_crew is required and must contain at least one crew member")
    if job.permit_required and job.permit_status != PERMIT_APPROVED:
        errors.append("Permit must be approved before scheduling")
    if job.deposit_required and job.deposit_status not in DEPOSIT_SATISFIED:
        errors.append("Deposit must be received or waived before scheduling")
    return ValidationResult.failure(*errors) if errors else ValidationResult.success()


def _validate_in_progress(job: JobSnapshot, reader: JobRelationsReader) -> ValidationResult:
    errors = _schedule_and_crew_errors(job, "starting work")
    if job.jha_required:
        if _is_blank(job.jha):
            errors.append("Job Hazard Analysis must be completed before starting work")
        if job.jha_acknowledged_at is None:
            errors.append("Job Hazard Analysis must be acknowledged before starting work")
    incomplete = reader.incomplete_form_names(job.id)
    if incomplete:
        errors.append(
            f"All job forms must be completed before starting work "
            f"({len(incomplete)} incomplete: {', '.join(incomplete)})"
        )
    return ValidationResult.failure(*errors) if errors else ValidationResult.success()


def _validate_completed(job: JobSnapshot, reader: JobRelationsReader) -> ValidationResult:
    errors = []
    if job.work_end_time is None:
        errors.append("work_end_time is required to mark job as completed")
    unchecked = [item for item in job.completion_checklist if not item.get("checked")]
    if unchecked:
        errors.append(f"Completion checklist has {len(unchecked)} unchecked items")
    if job.work_start_time is None:
        errors.append("Work must be started before it can be completed")
    return ValidationResult.failure(*errors) if errors else ValidationResult.success()


def _validate_invoiced(job: JobSnapshot, reader: JobRelationsReader) -> ValidationResult:
    if job.invoice_id is None:
        return ValidationResult.failure("invoice_id is required to mark job as invoiced")
    if not reader.invoice_exists(job.invoice_id):
        return ValidationResult.failure("Referenced invoice does not exist")
    return ValidationResult.success()


def _validate_paid(job: JobSnapshot, reader: JobRelationsReader) -> ValidationResult:
    errors = []
    if job.payment_received_at is None:
        errors.append("payment_received_at is required to mark job as paid")
    if job.invoice_id is None:
        errors.append("Job must be invoiced before marking as paid")
    return ValidationResult.failure(*errors) if errors else ValidationResult.success()


def _validate_needs_permit(job: JobSnapshot, reader: JobRelationsReader) -> ValidationResult:
    if not job.permit_required:
        return ValidationResult.failure("permit_required must be true to use this state")
    return ValidationResult.success()


def _validate_weather_hold(job: JobSnapshot, reader: JobRelationsReader) -> ValidationResult:
    if _is_blank(job.weather_hold_reason):
        return ValidationResult.failure(
            "weather_hold_reason is required when placing job on weather hold"
        )
    return ValidationResult.success()


def _validate_en_route(job: JobSnapshot, reader: JobRelationsReader) -> ValidationResult:
    errors = _schedule_and_crew_errors(job, "the crew is en route")
    return ValidationResult.failure(*errors) if errors else ValidationResult.success()


def _validate_on_site(job: JobSnapshot, reader: JobRelationsReader) -> ValidationResult:
    errors = _schedule_and_crew_errors(job, "the crew is on site")
    return ValidationResult.failure(*errors) if errors else ValidationResult.success()


STATE_VALIDATORS: dict[JobState, Validator] = {
    JobState.DRAFT: _topology_only,
    JobState.NEEDS_PERMIT: _validate_needs_permit,
    JobState.WAITING_ON_CLIENT: _topology_only,
    JobState.SCHEDULED: _validate_scheduled,
    JobState.EN_ROUTE: _validate_en_route,
    JobState.ON_SITE: _validate_on_site,
    JobState.WEATHER_HOLD: _validate_weather_hold,
    JobState.IN_PROGRESS: _validate_in_progress,
    JobState.COMPLETED: _validate_completed,
    JobState.INVOICED: _validate_invoiced,
    JobState.PAID: _validate_paid,
    JobState.CANCELLED: _topology_only,
}

_missing = set(JobState) - set(STATE_VALIDATORS)
if _missing:
    raise RuntimeError(
        f"STATE_VALIDATORS is missing states: {sorted(s.value for s in _missing)}"
    )
del _missing


def validate_destination(
    job: JobSnapshot,
    to_state: JobState,
    reader: JobRelationsReader,
) -> ValidationResult:
    """Run the guard for ``to_state`` against ``job``."""
    return STATE_VALIDATORS[to_state](job, reader)
