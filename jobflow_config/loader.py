"""
Configuration Loader (``jobflow_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``jobflow_config.schema`` dataclasses.  Runtime callers go through
``jobflow_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* ``config_id`` and ``version`` are required; section fields fall back to
  the schema defaults.
* Unknown keys raise ``ValueError`` so that a misspelt setting never
  silently reverts to its default.
* ``compute_checksum`` is deterministic for identical source data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id`` / ``version``  -> ``KeyError`` propagates.
* Out-of-range or unknown values  -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from jobflow_config.schema import (
    InvoicingConfig,
    LifecycleConfig,
    LockingConfig,
    ReminderConfig,
)
from jobflow_kernel.utils.hashing import hash_payload

_TOP_LEVEL_KEYS = frozenset({"config_id", "version", "invoicing", "locking", "reminders"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _check_keys(section: str, data: dict[str, Any], allowed: frozenset[str]) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"Unknown key(s) in '{section}': {', '.join(unknown)}")


def _field_names(cls: type) -> frozenset[str]:
    return frozenset(f.name for f in fields(cls))


def _positive_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{section}.{key} must be a positive integer, got {value!r}")
    return value


def parse_invoicing(data: dict[str, Any]) -> InvoicingConfig:
    """Parse an InvoicingConfig from a dict."""
    _check_keys("invoicing", data, _field_names(InvoicingConfig))
    defaults = InvoicingConfig()
    prefix = str(data.get("prefix", defaults.prefix)).strip()
    if not prefix:
        raise ValueError("invoicing.prefix must not be empty")
    return InvoicingConfig(
        prefix=prefix,
        min_digits=_positive_int(
            "invoicing", "min_digits", data.get("min_digits", defaults.min_digits)
        ),
        payment_terms_days=_positive_int(
            "invoicing",
            "payment_terms_days",
            data.get("payment_terms_days", defaults.payment_terms_days),
        ),
        payment_terms_label=str(data.get("payment_terms_label", defaults.payment_terms_label)),
        max_number_attempts=_positive_int(
            "invoicing",
            "max_number_attempts",
            data.get("max_number_attempts", defaults.max_number_attempts),
        ),
        default_line_description=str(
            data.get("default_line_description", defaults.default_line_description)
        ),
    )


def parse_locking(data: dict[str, Any]) -> LockingConfig:
    """Parse a LockingConfig from a dict."""
    _check_keys("locking", data, _field_names(LockingConfig))
    defaults = LockingConfig()
    return LockingConfig(
        job_lock_timeout_ms=_positive_int(
            "locking",
            "job_lock_timeout_ms",
            data.get("job_lock_timeout_ms", defaults.job_lock_timeout_ms),
        ),
        invoice_lock_timeout_ms=_positive_int(
            "locking",
            "invoice_lock_timeout_ms",
            data.get("invoice_lock_timeout_ms", defaults.invoice_lock_timeout_ms),
        ),
    )


def parse_reminders(data: dict[str, Any]) -> ReminderConfig:
    """Parse a ReminderConfig from a dict."""
    _check_keys("reminders", data, _field_names(ReminderConfig))
    raw = data.get("offsets_days", list(ReminderConfig().offsets_days))
    if not isinstance(raw, (list, tuple)):
        raise ValueError(f"reminders.offsets_days must be a list, got {raw!r}")
    offsets = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"reminders.offsets_days entries must be integers, got {value!r}")
        offsets.append(value)
    return ReminderConfig(offsets_days=tuple(sorted(set(offsets))))


def parse_lifecycle_config(data: dict[str, Any]) -> LifecycleConfig:
    """
    Parse a LifecycleConfig from a dict and stamp its checksum.

    Raises:
        KeyError: If config_id or version is missing.
        ValueError: On unknown keys or invalid values.
    """
    _check_keys("<root>", data, _TOP_LEVEL_KEYS)
    return LifecycleConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        invoicing=parse_invoicing(data.get("invoicing") or {}),
        locking=parse_locking(data.get("locking") or {}),
        reminders=parse_reminders(data.get("reminders") or {}),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> LifecycleConfig:
    """Load and parse one configuration file."""
    return parse_lifecycle_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 of the canonical JSON serialization of ``data``.

    Identical ``data`` always produces identical checksums.
    """
    return hash_payload(data)
