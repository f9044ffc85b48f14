"""
Lifecycle configuration schema.

Frozen dataclasses parsed from YAML by ``jobflow_config.loader``.  Every
field has the production default, so an empty section means "defaults".
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class InvoicingConfig:
    """Invoice numbering and drafting."""

    prefix: str = "INV"
    min_digits: int = 4
    payment_terms_days: int = 30
    payment_terms_label: str = "Net 30"
    max_number_attempts: int = 3
    default_line_description: str = "Tree Service"


@dataclass(frozen=True)
class LockingConfig:
    """
    Bounded lock waits, in milliseconds.

    On SQLite the job bound is the busy timeout of the transaction that
    takes the database write lock.  The invoice year lock only exists on
    PostgreSQL; on SQLite that transaction already holds the write lock.
    """

    job_lock_timeout_ms: int = 5000
    invoice_lock_timeout_ms: int = 5000


@dataclass(frozen=True)
class ReminderConfig:
    """Payment reminders, as day offsets from the due date."""

    offsets_days: tuple[int, ...] = (-3, 0, 7)


@dataclass(frozen=True)
class LifecycleConfig:
    """
    Complete configuration for one deployment of the job lifecycle kernel.

    ``checksum`` is the SHA-256 of the canonical source dict, filled in by
    the loader.
    """

    config_id: str
    version: int
    invoicing: InvoicingConfig = field(default_factory=InvoicingConfig)
    locking: LockingConfig = field(default_factory=LockingConfig)
    reminders: ReminderConfig = field(default_factory=ReminderConfig)
    checksum: str = ""
