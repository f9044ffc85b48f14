"""Utility modules for the jobflow kernel."""

from jobflow_kernel.utils.hashing import (
    advisory_lock_key,
    canonicalize_json,
    hash_payload,
)

__all__ = [
    "advisory_lock_key",
    "canonicalize_json",
    "hash_payload",
]
