"""Selectors for the jobflow kernel (read side)."""

from jobflow_kernel.selectors.job_selector import JobRelationsSelector, JobSelector
from jobflow_kernel.selectors.transition_history_selector import (
    TransitionHistorySelector,
)

__all__ = [
    "JobRelationsSelector",
    "JobSelector",
    "TransitionHistorySelector",
]
