"""
InvoiceNumberAllocator -- year-scoped, serialised invoice numbering.

Responsibility:
    Produces ``PREFIX-YEAR-NNNN`` numbers (at least ``min_digits`` digits)
    that never collide within a year and order numerically past 9999.

Architecture position:
    Kernel > Services.  Called by InvoiceDraftingService inside the
    completion trigger's transaction.

Invariants enforced:
    - The caller's Session is passed in explicitly.  The year lock is taken
      on that session's connection and is released when that session's
      transaction ends, so lock and unlock can never land on different
      pooled connections.
    - The caller must insert the invoice in the SAME transaction as the
      allocation.  The lock is held until that transaction commits, which
      is what keeps two concurrent completions from reading the same max.
    - Ordering is numeric: suffixes are parsed with a regex and compared as
      integers, never as strings.
    - Fallback numbers carry a ``T`` marker (``PREFIX-YEAR-T<epoch-ms>``),
      so the numeric scan never mistakes them for sequence numbers.

Failure modes:
    - Any store error while locking or scanning rolls back the savepoint and
      yields a fallback number instead of failing.  The uq_invoice_number
      constraint remains the backstop against duplicates.

Audit relevance:
    Every fallback is logged at WARNING (``invoice_number_fallback``) with
    the underlying error, since fallback numbers break the per-year
    sequence.
"""

import re

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jobflow_kernel.db.locks import acquire_named_lock
from jobflow_kernel.domain.clock import Clock, SystemClock
from jobflow_kernel.logging_config import get_logger
from jobflow_kernel.models.invoice import Invoice

logger = get_logger("services.invoice_number_allocator")


class InvoiceNumberAllocator:
    """
    Allocates the next invoice number for the current calendar year.

    Usage:
        number = allocator.allocate(session)
        session.add(Invoice(invoice_number=number, ...))
        session.commit()   # releases the year lock
    """

    def __init__(
        self,
        clock: Clock | None = None,
        prefix: str = "INV",
        min_digits: int = 4,
        lock_timeout_ms: int = 5000,
    ):
        self._clock = clock or SystemClock()
        self._prefix = prefix
        self._min_digits = min_digits
        self._lock_timeout_ms = lock_timeout_ms

    @property
    def prefix(self) -> str:
        return self._prefix

    def lock_name(self, year: int) -> str:
        return f"invoice_number:{self._prefix}:{year}"

    def format_number(self, year: int, sequence: int) -> str:
        return f"{self._prefix}-{year}-{sequence:0{self._min_digits}d}"

    def fallback_number(self, attempt: int = 0) -> str:
        """Timestamp-derived number; ``attempt`` > 0 adds a retry suffix."""
        now = self._clock.now()
        millis = int(now.timestamp() * 1000)
        suffix = f"T{millis}" if attempt == 0 else f"T{millis}R{attempt}"
        return f"{self._prefix}-{now.year}-{suffix}"

    def max_sequence(self, session: Session, year: int) -> int:
        """Largest numeric suffix already used this year (0 if none)."""
        base = f"{self._prefix}-{year}-"
        pattern = re.compile(rf"^{re.escape(base)}(\d+)$")
        numbers = session.execute(
            select(Invoice.invoice_number).where(Invoice.invoice_number.like(f"{base}%"))
        ).scalars()
        highest = 0
        for number in numbers:
            match = pattern.match(number)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest

    def allocate(self, session: Session) -> str:
        """
        Allocate the next number, holding the year lock until the caller's
        transaction ends.

        Never raises for store errors; returns a fallback number instead.
        """
        year = self._clock.today().year
        savepoint = session.begin_nested()
        try:
            acquire_named_lock(session, self.lock_name(year), self._lock_timeout_ms)
            number = self.format_number(year, self.max_sequence(session, year) + 1)
            savepoint.commit()
        except SQLAlchemyError as exc:
            savepoint.rollback()
            number = self.fallback_number()
            logger.warning(
                "invoice_number_fallback",
                extra={
                    "year": year,
                    "fallback_number": number,
                    "error": str(exc).splitlines()[0] if str(exc) else type(exc).__name__,
                },
            )
            return number

        logger.info("invoice_number_allocated", extra={"invoice_number": number, "year": year})
        return number
