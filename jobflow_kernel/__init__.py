"""
Jobflow Kernel - Job Lifecycle State Machine

Governs how field-service jobs move through their operational states:
- Guarded transitions (topology + per-state business validators)
- Row-locked, transactional state changes with an append-only audit trail
- Post-commit automation (crew notices, invoice drafting, client category)
- Year-scoped, serialized invoice numbering
"""

__version__ = "0.1.0"
