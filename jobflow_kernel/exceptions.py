"""
Typed Exception Hierarchy for the Jobflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the job state machine (HTTP handlers, schedulers, retry loops)
need to react to failures by category, not by parsing message text:

    try:
        ...
    except LockTimeoutError:
        retry_later()          # nothing was committed, safe to retry
    except TransitionValidationError as e:
        show_to_user(e.errors)  # every unmet precondition at once

Every exception has a CODE class attribute (machine-readable, API-safe) and
carries its context as attributes rather than only in the message.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    JobflowKernelError (base)
    |
    +-- JobError
    |   +-- JobNotFoundError
    |   +-- InvalidJobUpdateError
    |   +-- InvalidTransitionOptionError
    |
    +-- TransitionError
    |   +-- UnknownJobStateError
    |   +-- IllegalTransitionError
    |   +-- TransitionValidationError
    |
    +-- ConcurrencyError               (retryable unless flagged otherwise)
    |   +-- LockTimeoutError
    |   +-- TransactionFailedError
    |
    +-- InvoicingError
    |   +-- InvoiceNotFoundError
    |   +-- InvoiceNumberCollisionError
    |
    +-- AutomationError
    |   +-- AutomationTriggerError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                          | When Raised
--------------|-------------------------------|-----------------------------------
Job           | JOB_NOT_FOUND                 | Job ID doesn't exist
              | INVALID_JOB_UPDATE            | Update names a protected field or has a bad value
              | INVALID_TRANSITION_OPTION     | Unknown change source, notes/metadata not a mapping
--------------|-------------------------------|-----------------------------------
Transition    | UNKNOWN_JOB_STATE             | Target is not one of the 12 states
              | ILLEGAL_TRANSITION            | Edge not in the transition table
              | TRANSITION_VALIDATION_FAILED  | Business preconditions unmet
--------------|-------------------------------|-----------------------------------
Concurrency   | LOCK_TIMEOUT                  | Row/year lock wait exceeded bound
              | TRANSACTION_FAILED            | Deadlock, connectivity, store error (retryable);
              |                               | constraint or unstorable value (not retryable)
--------------|-------------------------------|-----------------------------------
Invoicing     | INVOICE_NOT_FOUND             | Linked invoice missing
              | INVOICE_NUMBER_COLLISION      | Fallback numbers kept colliding
--------------|-------------------------------|-----------------------------------
Automation    | AUTOMATION_TRIGGER_FAILED     | Post-commit trigger raised
--------------|-------------------------------|-----------------------------------
Immutability  | IMMUTABILITY_VIOLATION        | Audit row UPDATE/DELETE attempted
"""


class JobflowKernelError(Exception):
    """
    Base exception for all jobflow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.  ``retryable`` tells callers whether repeating the
    same request can succeed without any change on their side.
    """

    code: str = "JOBFLOW_KERNEL_ERROR"
    retryable: bool = False


# Job-related exceptions


class JobError(JobflowKernelError):
    """Base exception for job-related errors."""

    code: str = "JOB_ERROR"


class JobNotFoundError(JobError):
    """Job with given ID was not found."""

    code: str = "JOB_NOT_FOUND"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__("Job not found")


class InvalidJobUpdateError(JobError):
    """
    Caller-supplied job field updates cannot be applied.

    Either a key names a protected or unknown field, or a value cannot be
    stored in its column (``problems`` then holds one entry per bad field).
    """

    code: str = "INVALID_JOB_UPDATE"

    def __init__(self, fields: list[str], problems: list[str] | None = None):
        self.fields = fields
        self.problems = list(problems or [])
        if self.problems:
            message = f"Invalid job field value(s): {'; '.join(self.problems)}"
        else:
            message = f"Job fields cannot be updated during a transition: {', '.join(fields)}"
        super().__init__(message)


class InvalidTransitionOptionError(JobError):
    """A TransitionOptions value other than job_updates is malformed."""

    code: str = "INVALID_TRANSITION_OPTION"

    def __init__(self, option: str, reason: str):
        self.option = option
        self.reason = reason
        super().__init__(f"Invalid transition option '{option}': {reason}")


# Transition-related exceptions


class TransitionError(JobflowKernelError):
    """Base exception for state transition errors."""

    code: str = "TRANSITION_ERROR"

    @property
    def errors(self) -> list[str]:
        """Human-readable reasons, suitable for display."""
        return [str(self)]


class UnknownJobStateError(TransitionError):
    """Requested state is not a defined job state."""

    code: str = "UNKNOWN_JOB_STATE"

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"Unknown job state '{state}'")


class IllegalTransitionError(TransitionError):
    """The transition table has no edge from the current state to the target."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, job_id: str, from_state: str, to_state: str):
        self.job_id = job_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Transition from '{from_state}' to '{to_state}' is not allowed"
        )


class TransitionValidationError(TransitionError):
    """Topologically legal, but one or more business preconditions are unmet."""

    code: str = "TRANSITION_VALIDATION_FAILED"

    def __init__(self, job_id: str, to_state: str, reasons: list[str]):
        self.job_id = job_id
        self.to_state = to_state
        self.reasons = list(reasons)
        super().__init__(
            f"Cannot transition job {job_id} to '{to_state}': "
            f"{len(self.reasons)} unmet precondition(s)"
        )

    @property
    def errors(self) -> list[str]:
        return list(self.reasons)


# Concurrency exceptions


class ConcurrencyError(JobflowKernelError):
    """Base exception for store-level failures.  Nothing was committed."""

    code: str = "CONCURRENCY_ERROR"
    retryable: bool = True


class LockTimeoutError(ConcurrencyError):
    """A row or advisory lock could not be acquired within the bound."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, resource: str, timeout_ms: int | None = None):
        self.resource = resource
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Timed out waiting for lock on {resource}; safe to retry"
        )


class TransactionFailedError(ConcurrencyError):
    """
    The locked write failed.

    Deadlocks and lost connections are retryable.  A constraint violation or
    a value the store cannot accept fails the same way every time, so those
    are raised with ``retryable=False``.
    """

    code: str = "TRANSACTION_FAILED"

    def __init__(self, operation: str, detail: str, retryable: bool = True):
        self.operation = operation
        self.detail = detail
        self.retryable = retryable
        super().__init__(f"Transaction failed: {detail}")


# Invoicing exceptions


class InvoicingError(JobflowKernelError):
    """Base exception for invoice drafting and numbering errors."""

    code: str = "INVOICING_ERROR"


class InvoiceNotFoundError(InvoicingError):
    """Invoice linked from a job does not exist."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class InvoiceNumberCollisionError(InvoicingError):
    """Every attempt to insert an invoice hit the invoice-number constraint."""

    code: str = "INVOICE_NUMBER_COLLISION"

    def __init__(self, job_id: str, attempts: int, last_number: str):
        self.job_id = job_id
        self.attempts = attempts
        self.last_number = last_number
        super().__init__(
            f"Invoice number collided {attempts} time(s) for job {job_id} "
            f"(last tried {last_number})"
        )


# Automation exceptions


class AutomationError(JobflowKernelError):
    """Base exception for post-commit automation errors."""

    code: str = "AUTOMATION_ERROR"


class AutomationTriggerError(AutomationError):
    """A trigger could not complete its side effect."""

    code: str = "AUTOMATION_TRIGGER_FAILED"

    def __init__(self, state: str, job_id: str, reason: str):
        self.state = state
        self.job_id = job_id
        self.reason = reason
        super().__init__(f"Trigger for '{state}' on job {job_id} failed: {reason}")


# Immutability exceptions


class ImmutabilityError(JobflowKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
