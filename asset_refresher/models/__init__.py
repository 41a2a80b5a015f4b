"""
Data Models Layer.

This package contains the Pydantic configuration model and the state, job and
event types that flow between the coordinator and its collaborators.
"""

from .config import RefreshConfig
from .state import (
    ActiveJob,
    CoordinatorState,
    JobKind,
    JobResult,
    JobStatus,
    ResultListener,
    RevalidationResult,
)

__all__ = [
    "ActiveJob",
    "CoordinatorState",
    "JobKind",
    "JobResult",
    "JobStatus",
    "RefreshConfig",
    "ResultListener",
    "RevalidationResult",
]
