"""
Shared fixtures and fakes for the asset-refresher test suite.

The coordinator is exercised against in-memory stand-ins for its
collaborators so that no test depends on real network access.
"""

import asyncio
from pathlib import Path

import pytest

from asset_refresher.core.coordinator import RefreshCoordinator
from asset_refresher.models.state import JobResult, JobStatus, RevalidationResult
from asset_refresher.network.monitor import NetworkMonitor

DOWNLOAD_URL = "https://cdn.example.com/media/demo.mp4"


class FakeSubmitter:
    """Records submissions and lets tests finish jobs by hand."""

    def __init__(self):
        self.submissions: list[tuple[str, str]] = []
        self.results: dict[int, JobResult] = {}
        self._listeners = []
        self._next_id = 100

    def add_completion_listener(self, listener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_completion_listener(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def submit(self, url: str, destination_path: str) -> int:
        self._next_id += 1
        self.submissions.append((url, destination_path))
        self.results[self._next_id] = JobResult(JobStatus.RUNNING)
        return self._next_id

    def query_result(self, job_id: int) -> JobResult:
        return self.results.get(job_id, JobResult(JobStatus.UNKNOWN))

    def complete(self, job_id: int, status: JobStatus, local_path: str | None = None):
        self.results[job_id] = JobResult(status, local_path)
        for listener in list(self._listeners):
            listener(job_id)

    @property
    def last_job_id(self) -> int:
        return self._next_id


class FakeChecker:
    """Returns queued revalidation answers and records the timestamps sent."""

    def __init__(self, *results):
        self.results = list(results) or [RevalidationResult.UNCHANGED]
        self.calls: list[tuple[str, float | None]] = []

    async def check_for_update(self, url, known_last_modified):
        self.calls.append((url, known_last_modified))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class RecordingListener:
    def __init__(self):
        self.downloaded: list[str] = []
        self.errors = 0

    def on_file_downloaded(self, path: str) -> None:
        self.downloaded.append(path)

    def on_error(self) -> None:
        self.errors += 1


async def drain(coordinator: RefreshCoordinator) -> None:
    """Waits until every queued event has been handled."""
    await asyncio.wait_for(coordinator._queue.join(), timeout=2)


@pytest.fixture
def asset_dir(tmp_path) -> Path:
    directory = tmp_path / "assets"
    directory.mkdir()
    return directory


@pytest.fixture
def asset_path(asset_dir) -> Path:
    return asset_dir / "demo.mp4"


@pytest.fixture
def submitter():
    return FakeSubmitter()


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def online_monitor():
    return NetworkMonitor(initially_connected=True)


@pytest.fixture
def offline_monitor():
    return NetworkMonitor(initially_connected=False)


@pytest.fixture
async def make_coordinator(asset_path, submitter, listener):
    """Builds coordinators and stops them when the test ends."""
    created: list[RefreshCoordinator] = []

    def _make(monitor, checker=None, preload_path=None, cleanup_delay=0.01):
        coordinator = RefreshCoordinator(
            download_url=DOWNLOAD_URL,
            asset_path=asset_path,
            submitter=submitter,
            monitor=monitor,
            checker=checker or FakeChecker(),
            listener=listener,
            preload_path=preload_path,
            cleanup_delay=cleanup_delay,
        )
        created.append(coordinator)
        return coordinator

    yield _make

    for coordinator in created:
        await coordinator.stop()
