"""
jobflow_config -- single public entrypoint for lifecycle configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``LifecycleConfig``.

Architecture position:
    Configuration.  Sits above ``jobflow_kernel``; the kernel MUST NEVER
    import from ``jobflow_config``.  ``jobflow_config.bridges`` translates
    a LifecycleConfig into kernel constructor arguments.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or invalid settings.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``JOBFLOW_CONFIG_TRACE`` log entry with the config_id, version and
    checksum, tying invoice numbering and lock behaviour back to the exact
    configuration that governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from jobflow_config.loader import load_config
from jobflow_config.schema import (
    InvoicingConfig,
    LifecycleConfig,
    LockingConfig,
    ReminderConfig,
)

_logger = logging.getLogger("jobflow_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> LifecycleConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to the packaged
            ``defaults.yaml``.

    Returns:
        LifecycleConfig with its checksum populated.

    Raises:
        FileNotFoundError: If the file does not exist.
        KeyError: If config_id or version is missing.
        ValueError: If any setting is unknown or out of range.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_config(path)

    _logger.info(
        "JOBFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "JOBFLOW_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "invoice_prefix": config.invoicing.prefix,
            "reminder_offsets": list(config.reminders.offsets_days),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "InvoicingConfig",
    "LifecycleConfig",
    "LockingConfig",
    "ReminderConfig",
    "get_active_config",
]
