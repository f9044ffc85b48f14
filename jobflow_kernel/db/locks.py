"""
Module: jobflow_kernel.db.locks
Responsibility: Bounded lock waits, year-scoped named (advisory) locks, and
    translation of store errors into the kernel's retryable exceptions.
Architecture position: Kernel > DB.  Used by the job state machine (job row
    lock) and the invoice number allocator (year lock).

Invariants enforced:
    - Lock waits are bounded.  On PostgreSQL, ``SET LOCAL lock_timeout``
      scopes the bound to the current transaction.  On SQLite the bound is
      handed to the BEGIN IMMEDIATE hook in db/engine.py, which sets the
      connection busy timeout before taking the database write lock.
    - Named locks are transaction-scoped (``pg_advisory_xact_lock``).  They are
      released when the holding transaction commits or rolls back, on the
      same connection that took them, so they can never leak to a pooled
      connection.

Failure modes:
    - OperationalError with pgcode 55P03 (lock_not_available) or SQLite
      "database is locked" -> LockTimeoutError.
    - Deadlock (40P01), connectivity and other operational errors ->
      TransactionFailedError (retryable).
    - Constraint violations, rejected data and values that could not be
      bound at all -> TransactionFailedError(retryable=False).
"""

from sqlalchemy import text
from sqlalchemy.exc import (
    DataError,
    DBAPIError,
    IntegrityError,
    ProgrammingError,
    SQLAlchemyError,
    StatementError,
)
from sqlalchemy.orm import Session

from jobflow_kernel.db.engine import SQLITE_LOCK_TIMEOUT_OPTION
from jobflow_kernel.exceptions import (
    ConcurrencyError,
    LockTimeoutError,
    TransactionFailedError,
)
from jobflow_kernel.logging_config import get_logger
from jobflow_kernel.utils.hashing import advisory_lock_key

logger = get_logger("db.locks")

# PostgreSQL SQLSTATE for lock_timeout expiry
PG_LOCK_NOT_AVAILABLE = "55P03"


def _dialect_name(session: Session) -> str:
    return session.get_bind().dialect.name


def apply_lock_timeout(session: Session, timeout_ms: int) -> None:
    """
    Bound how long the current transaction waits for any lock.

    On SQLite this must be the first thing done with a fresh session: the
    bound travels with the connection into BEGIN IMMEDIATE, which is where
    SQLite waits.  Once the session holds the write lock there is nothing
    left to wait for, so a later call is a no-op.
    """
    if _dialect_name(session) == "postgresql":
        session.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))
    elif not session.in_transaction():
        session.connection(execution_options={SQLITE_LOCK_TIMEOUT_OPTION: int(timeout_ms)})


def acquire_named_lock(session: Session, name: str, timeout_ms: int) -> None:
    """
    Take a transaction-scoped named lock on the session's connection.

    Blocks until the lock is granted or ``timeout_ms`` elapses (the latter
    raises OperationalError, which classify_store_error maps to
    LockTimeoutError).  On SQLite the transaction already holds the
    database write lock, so there is nothing further to take.
    """
    if _dialect_name(session) != "postgresql":
        return
    apply_lock_timeout(session, timeout_ms)
    key = advisory_lock_key(name)
    session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
    logger.debug("named_lock_acquired", extra={"lock_name": name, "lock_key": key})


def _is_lock_timeout(exc: SQLAlchemyError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == PG_LOCK_NOT_AVAILABLE:
        return True
    return "database is locked" in str(orig or exc).lower()


def _is_permanent(exc: SQLAlchemyError) -> bool:
    """True when repeating the same statement cannot succeed."""
    if isinstance(exc, (IntegrityError, DataError, ProgrammingError)):
        return True
    # parameter binding failed before anything reached the database
    return isinstance(exc, StatementError) and not isinstance(exc, DBAPIError)


def classify_store_error(
    exc: SQLAlchemyError,
    *,
    operation: str,
    resource: str,
    timeout_ms: int | None = None,
) -> ConcurrencyError:
    """
    Translate a SQLAlchemy error into a kernel exception.

    Returns (does not raise) so callers can decide whether to raise or to
    fold the error into a result object.
    """
    if isinstance(exc, DBAPIError) and _is_lock_timeout(exc):
        return LockTimeoutError(resource, timeout_ms)
    lines = str(getattr(exc, "orig", None) or exc).strip().splitlines()
    detail = lines[0] if lines else type(exc).__name__
    return TransactionFailedError(operation, detail, retryable=not _is_permanent(exc))
