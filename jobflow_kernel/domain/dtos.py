"""
DTOs -- Immutable data passed across the kernel's boundaries.

Responsibility:
    Defines what callers hand to the job state machine (TransitionOptions),
    what validators read (JobSnapshot), and what comes back
    (TransitionResult, TransitionRecord, TransitionOptionsView).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters invoked from selectors and services only.

Invariants enforced:
    - Domain logic accepts/returns DTOs, never ORM entities.
    - A JobSnapshot overlay can never touch id, status,
      last_state_change_at or created_at (InvalidJobUpdateError).
    - Update values are coerced to their column types (ISO strings to
      date/datetime, strings to UUID) or rejected before any validator or
      the database sees them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from jobflow_kernel.domain.job_states import JobState, parse_state
from jobflow_kernel.exceptions import InvalidJobUpdateError, InvalidTransitionOptionError

if TYPE_CHECKING:
    from jobflow_kernel.models.job import Job as JobModel
    from jobflow_kernel.models.job_state_transition import (
        JobStateTransition as JobStateTransitionModel,
    )


def to_jsonable(value: Any) -> Any:
    """Convert a DTO field value into plain JSON-compatible data."""
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


class ChangeSource(str, Enum):
    """Where a state change originated."""

    MANUAL = "manual"
    AUTOMATED = "automated"
    SYSTEM = "system"
    API = "api"


def parse_change_source(value: ChangeSource | str) -> ChangeSource:
    """Raises InvalidTransitionOptionError for anything but a ChangeSource value."""
    try:
        return ChangeSource(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ChangeSource)
        raise InvalidTransitionOptionError(
            "source", f"{value!r} is not one of: {allowed}"
        ) from None


@dataclass(frozen=True)
class TransitionOptions:
    """
    Caller-supplied context for one transition request.

    ``job_updates`` are extra job fields written atomically with the status
    change (e.g. ``weather_hold_reason`` when entering weather_hold).
    Validators see the job with these updates already applied.
    """

    actor_id: str | None = None
    actor_role: str | None = None
    source: ChangeSource = ChangeSource.MANUAL
    reason: str | None = None
    notes: Mapping[str, Any] | None = None
    metadata: Mapping[str, Any] | None = None
    job_updates: Mapping[str, Any] = field(default_factory=dict)

    def normalized(self) -> TransitionOptions:
        """
        Validate caller input and return options ready to persist.

        Raises:
            InvalidTransitionOptionError: Unknown source, or notes, metadata
                or job_updates that are not mappings.
            InvalidJobUpdateError: Protected or unknown field, or a value of
                the wrong type.
        """
        for name in ("notes", "metadata", "job_updates"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, Mapping):
                raise InvalidTransitionOptionError(
                    name, f"expected a mapping, got {type(value).__name__}"
                )
        return replace(
            self,
            source=parse_change_source(self.source),
            job_updates=normalize_job_updates(self.job_updates or {}),
        )


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of a precondition check.

    errors holds every unmet precondition, not just the first.
    bool(result) == result.is_valid.
    """

    errors: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(errors=())

    @classmethod
    def failure(cls, *errors: str) -> ValidationResult:
        return cls(errors=tuple(errors))

    def __bool__(self) -> bool:
        return self.is_valid


@dataclass(frozen=True)
class JobSnapshot:
    """
    Read-only view of a job row.

    JSON list columns are frozen into tuples.  ``with_updates()`` returns a
    new snapshot with caller-supplied field values overlaid, which is what
    validators run against.
    """

    id: UUID
    status: str
    job_number: str | None = None
    last_state_change_at: datetime | None = None
    client_id: UUID | None = None
    property_id: UUID | None = None
    quote_id: UUID | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    scheduled_date: date | None = None
    assigned_crew: tuple[Any, ...] = ()
    jha_required: bool = False
    jha: Any = None
    jha_acknowledged_at: datetime | None = None
    jha_acknowledged_by: str | None = None
    permit_required: bool = False
    permit_status: str | None = None
    deposit_required: bool = False
    deposit_status: str | None = None
    work_start_time: datetime | None = None
    work_end_time: datetime | None = None
    completion_checklist: tuple[Mapping[str, Any], ...] = ()
    invoice_id: UUID | None = None
    payment_received_at: datetime | None = None
    weather_hold_reason: str | None = None
    created_at: datetime | None = None

    @property
    def state(self) -> JobState | None:
        return parse_state(self.status)

    @classmethod
    def from_model(cls, model: JobModel) -> JobSnapshot:
        return cls(
            id=model.id,
            status=model.status,
            job_number=model.job_number,
            last_state_change_at=model.last_state_change_at,
            client_id=model.client_id,
            property_id=model.property_id,
            quote_id=model.quote_id,
            customer_name=model.customer_name,
            customer_email=model.customer_email,
            customer_phone=model.customer_phone,
            scheduled_date=model.scheduled_date,
            assigned_crew=tuple(model.assigned_crew or ()),
            jha_required=bool(model.jha_required),
            jha=model.jha,
            jha_acknowledged_at=model.jha_acknowledged_at,
            jha_acknowledged_by=model.jha_acknowledged_by,
            permit_required=bool(model.permit_required),
            permit_status=model.permit_status,
            deposit_required=bool(model.deposit_required),
            deposit_status=model.deposit_status,
            work_start_time=model.work_start_time,
            work_end_time=model.work_end_time,
            completion_checklist=tuple(model.completion_checklist or ()),
            invoice_id=model.invoice_id,
            payment_received_at=model.payment_received_at,
            weather_hold_reason=model.weather_hold_reason,
            created_at=model.created_at,
        )

    def with_updates(self, updates: Mapping[str, Any]) -> JobSnapshot:
        """
        Overlay field updates.

        Raises:
            InvalidJobUpdateError: If any key is protected or not a job field,
                or any value cannot be coerced to the field's type.
        """
        normalized = normalize_job_updates(updates)
        if not normalized:
            return self
        return replace(self, **normalized)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: to_jsonable(getattr(self, f.name)) for f in fields(self)}


PROTECTED_JOB_FIELDS: frozenset[str] = frozenset(
    {"id", "status", "last_state_change_at", "created_at"}
)

UPDATABLE_JOB_FIELDS: frozenset[str] = frozenset(
    f.name for f in fields(JobSnapshot)
) - PROTECTED_JOB_FIELDS


def check_job_updates(updates: Mapping[str, Any]) -> None:
    """Raise InvalidJobUpdateError unless every key is an updatable job field."""
    bad = sorted(k for k in updates if k not in UPDATABLE_JOB_FIELDS)
    if bad:
        raise InvalidJobUpdateError(bad)


_DATE_FIELDS = frozenset({"scheduled_date"})
_DATETIME_FIELDS = frozenset(
    {"jha_acknowledged_at", "work_start_time", "work_end_time", "payment_received_at"}
)
_UUID_FIELDS = frozenset({"client_id", "property_id", "quote_id", "invoice_id"})
_BOOL_FIELDS = frozenset({"jha_required", "permit_required", "deposit_required"})
_LIST_FIELDS = frozenset({"assigned_crew", "completion_checklist"})


def _parse_datetime(value: str) -> datetime:
    # fromisoformat() only learned the "Z" suffix in 3.11
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _coerce_update(name: str, value: Any) -> Any:
    """Return ``value`` as the Python type of job field ``name``; ValueError if impossible."""
    if name in _LIST_FIELDS:
        if value is None:
            return ()
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"expected a list, got {type(value).__name__}")
        return tuple(value)
    if name in _BOOL_FIELDS:
        if not isinstance(value, bool):
            raise ValueError(f"expected true or false, got {value!r}")
        return value
    if value is None:
        return None
    if name in _DATETIME_FIELDS:
        if isinstance(value, str):
            value = _parse_datetime(value)
        if not isinstance(value, datetime):
            raise ValueError(f"expected a datetime or ISO 8601 string, got {value!r}")
        return value
    if name in _DATE_FIELDS:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            return date.fromisoformat(value)
        if not isinstance(value, date):
            raise ValueError(f"expected a date or ISO 8601 string, got {value!r}")
        return value
    if name in _UUID_FIELDS:
        return value if isinstance(value, UUID) else UUID(str(value))
    return value


def normalize_job_updates(updates: Mapping[str, Any]) -> dict[str, Any]:
    """
    Check and coerce caller-supplied job field updates.

    Every bad value is reported, not just the first.

    Raises:
        InvalidJobUpdateError: If any key is protected or not a job field, or
            any value cannot be coerced to its field's type.
    """
    check_job_updates(updates)
    normalized: dict[str, Any] = {}
    problems: dict[str, str] = {}
    for name, value in updates.items():
        try:
            normalized[name] = _coerce_update(name, value)
        except ValueError as exc:
            problems[name] = f"{name}: {exc}"
    if problems:
        names = sorted(problems)
        raise InvalidJobUpdateError(names, [problems[n] for n in names])
    return normalized


@dataclass(frozen=True)
class TransitionRecord:
    """One row of a job's state audit trail."""

    id: UUID
    job_id: UUID
    sequence: int
    from_state: str | None
    to_state: str
    changed_by: str | None
    changed_by_role: str | None
    change_source: str
    reason: str | None
    notes: Mapping[str, Any] | None
    metadata: Mapping[str, Any] | None
    created_at: datetime

    @classmethod
    def from_model(cls, model: JobStateTransitionModel) -> TransitionRecord:
        return cls(
            id=model.id,
            job_id=model.job_id,
            sequence=model.sequence,
            from_state=model.from_state,
            to_state=model.to_state,
            changed_by=model.changed_by,
            changed_by_role=model.changed_by_role,
            change_source=model.change_source,
            reason=model.reason,
            notes=model.notes,
            metadata=model.transition_metadata,
            created_at=model.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {f.name: to_jsonable(getattr(self, f.name)) for f in fields(self)}


class TransitionStatus(str, Enum):
    """Outcome of a transition request."""

    TRANSITIONED = "transitioned"
    JOB_NOT_FOUND = "job_not_found"
    UNKNOWN_STATE = "unknown_state"
    ILLEGAL_TRANSITION = "illegal_transition"
    VALIDATION_FAILED = "validation_failed"
    INVALID_UPDATE = "invalid_update"
    LOCK_TIMEOUT = "lock_timeout"
    TRANSACTION_FAILED = "transaction_failed"


@dataclass(frozen=True)
class TransitionResult:
    """
    Result of JobStateMachine.transition().

    On success ``job`` is the committed job (after triggers ran) and
    ``transition`` the audit row.  On failure ``errors`` lists every reason,
    ``error_code`` is the exception code, and ``retryable`` says whether the
    identical request may succeed later (lock timeouts, store failures).
    """

    status: TransitionStatus
    job_id: UUID | str
    job: JobSnapshot | None = None
    transition: TransitionRecord | None = None
    errors: tuple[str, ...] = ()
    error_code: str | None = None
    retryable: bool = False

    @property
    def ok(self) -> bool:
        return self.status == TransitionStatus.TRANSITIONED


@dataclass(frozen=True)
class TransitionOption:
    """One candidate next state for a job, with what currently blocks it."""

    state: JobState
    state_name: str
    allowed: bool
    blocked_reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class TransitionOptionsView:
    """Every topologically reachable next state for a job."""

    job_id: UUID
    current_state: str
    current_state_name: str
    transitions: tuple[TransitionOption, ...] = ()


@dataclass(frozen=True)
class EnrichedJobSnapshot:
    """
    A job plus the related records consumers of job events need.

    client, property, quote_pricing and invoice are plain dicts (or None
    when the job has no such link).
    """

    job: JobSnapshot
    client: Mapping[str, Any] | None = None
    property: Mapping[str, Any] | None = None
    quote_pricing: Mapping[str, Any] | None = None
    invoice: Mapping[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = self.job.to_dict()
        data["client"] = to_jsonable(self.client) if self.client is not None else None
        data["property"] = to_jsonable(self.property) if self.property is not None else None
        data["quote_pricing"] = (
            to_jsonable(self.quote_pricing) if self.quote_pricing is not None else None
        )
        data["invoice"] = to_jsonable(self.invoice) if self.invoice is not None else None
        return data
