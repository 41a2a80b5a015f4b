"""
Core application engine.

This package contains the `RefreshCoordinator`, the state machine that ties the
network monitor, the revalidation checker, the download job submitter and the
promotion step together on a single serialized worker.
"""

from .coordinator import RefreshCoordinator

__all__ = ["RefreshCoordinator"]
