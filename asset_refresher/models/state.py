"""
State, job and event types shared by the coordinator and its collaborators.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class CoordinatorState(Enum):
    """Lifecycle states of the refresh coordinator."""

    IDLE = "idle"
    AWAITING_NETWORK_FOR_INITIAL_DOWNLOAD = "awaiting_network_for_initial_download"
    DOWNLOADING_INITIAL = "downloading_initial"
    CHECKING_FOR_UPDATE = "checking_for_update"
    AWAITING_NETWORK_FOR_UPDATE_CHECK = "awaiting_network_for_update_check"
    DOWNLOADING_UPDATE = "downloading_update"
    SETTLED = "settled"


class JobKind(Enum):
    """Why a download job was submitted."""

    INITIAL = "initial"  # First-time fetch, no usable asset on disk
    UPDATE = "update"  # Revalidation found a newer remote copy


class JobStatus(Enum):
    SUCCESSFUL = "successful"
    FAILED = "failed"
    RUNNING = "running"
    UNKNOWN = "unknown"


class RevalidationResult(Enum):
    UNCHANGED = "unchanged"
    STALE = "stale"


@dataclass(frozen=True)
class ActiveJob:
    """The single outstanding download the coordinator is waiting on."""

    kind: JobKind
    job_id: int


@dataclass
class DownloadJob:
    """One asynchronous fetch tracked by the job submitter."""

    job_id: int
    url: str
    target_path: str
    submitted_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class JobResult:
    """Outcome of a job as reported by `DownloadJobSubmitter.query_result`."""

    status: JobStatus
    local_path: str | None = None


# Events consumed by the coordinator's worker


@dataclass(frozen=True)
class CheckForUpdate:
    pass


@dataclass(frozen=True)
class NetworkAvailable:
    pass


@dataclass(frozen=True)
class DownloadComplete:
    job_id: int


@dataclass(frozen=True)
class CleanupDownloadDir:
    pass


CoordinatorEvent = CheckForUpdate | NetworkAvailable | DownloadComplete | CleanupDownloadDir


class ResultListener(Protocol):
    """Receives the outcomes the coordinator surfaces to its host."""

    def on_file_downloaded(self, path: str) -> None:
        """Called with the canonical path each time a fresh asset is in place."""

    def on_error(self) -> None:
        """Called when the asset is missing and no network is available."""
