"""
Tests for DownloadJobSubmitter with a stubbed transfer engine.
"""

import asyncio

import aiohttp
import pytest

from asset_refresher.media.jobs import DownloadJobSubmitter, resolve_destination
from asset_refresher.models.state import JobStatus

URL = "https://cdn.example.com/demo.mp4"


class StubDownloader:
    """Writes fixed content, or fails, without touching the network."""

    def __init__(self, content: bytes = b"video", error: Exception | None = None):
        self.content = content
        self.error = error
        self.release = asyncio.Event()
        self.release.set()
        self.calls: list[tuple[str, str]] = []

    async def download_file(self, url: str, destination_path: str) -> int:
        self.calls.append((url, destination_path))
        await self.release.wait()
        if self.error:
            raise self.error
        with open(destination_path, "wb") as f:
            f.write(self.content)
        return len(self.content)


def completion_waiter(submitter: DownloadJobSubmitter):
    finished: list[int] = []
    event = asyncio.Event()

    def _listener(job_id: int):
        finished.append(job_id)
        event.set()

    submitter.add_completion_listener(_listener)
    return finished, event


def test_resolve_destination_picks_first_free_name(tmp_path):
    target = tmp_path / "demo.mp4"
    assert resolve_destination(target) == target

    target.write_bytes(b"a")
    (tmp_path / "demo-1.mp4").write_bytes(b"b")
    assert resolve_destination(target) == tmp_path / "demo-2.mp4"


@pytest.mark.asyncio
async def test_successful_job_reports_written_path(tmp_path):
    submitter = DownloadJobSubmitter(StubDownloader(b"payload"))
    finished, done = completion_waiter(submitter)
    target = tmp_path / "media" / "demo.mp4"

    job_id = submitter.submit(URL, str(target))
    await asyncio.wait_for(done.wait(), timeout=2)

    assert finished == [job_id]
    result = submitter.query_result(job_id)
    assert result.status is JobStatus.SUCCESSFUL
    assert result.local_path == str(target)
    assert target.read_bytes() == b"payload"
    assert submitter.get_job(job_id).url == URL


@pytest.mark.asyncio
async def test_existing_destination_gets_numbered_sibling(tmp_path):
    target = tmp_path / "demo.mp4"
    target.write_bytes(b"current")
    submitter = DownloadJobSubmitter(StubDownloader(b"newer"))
    _, done = completion_waiter(submitter)

    job_id = submitter.submit(URL, str(target))
    await asyncio.wait_for(done.wait(), timeout=2)

    result = submitter.query_result(job_id)
    assert result.local_path == str(tmp_path / "demo-1.mp4")
    assert target.read_bytes() == b"current"


@pytest.mark.asyncio
async def test_running_then_failed(tmp_path):
    downloader = StubDownloader(error=aiohttp.ClientConnectionError("refused"))
    downloader.release.clear()
    submitter = DownloadJobSubmitter(downloader)
    finished, done = completion_waiter(submitter)

    job_id = submitter.submit(URL, str(tmp_path / "demo.mp4"))
    await asyncio.sleep(0)
    assert submitter.query_result(job_id).status is JobStatus.RUNNING

    downloader.release.set()
    await asyncio.wait_for(done.wait(), timeout=2)

    assert finished == [job_id]
    result = submitter.query_result(job_id)
    assert result.status is JobStatus.FAILED
    assert result.local_path is None


@pytest.mark.asyncio
async def test_ids_are_unique_and_unknown_ids_report_unknown(tmp_path):
    submitter = DownloadJobSubmitter(StubDownloader())
    first = submitter.submit(URL, str(tmp_path / "a.mp4"))
    second = submitter.submit(URL, str(tmp_path / "b.mp4"))

    assert second > first
    assert submitter.query_result(9999).status is JobStatus.UNKNOWN
    await submitter.close()


@pytest.mark.asyncio
async def test_listener_errors_do_not_block_others(tmp_path):
    submitter = DownloadJobSubmitter(StubDownloader())

    def _broken(job_id):
        raise ValueError("listener bug")

    submitter.add_completion_listener(_broken)
    finished, done = completion_waiter(submitter)

    job_id = submitter.submit(URL, str(tmp_path / "demo.mp4"))
    await asyncio.wait_for(done.wait(), timeout=2)

    assert finished == [job_id]


@pytest.mark.asyncio
async def test_close_cancels_pending_jobs(tmp_path):
    downloader = StubDownloader()
    downloader.release.clear()
    submitter = DownloadJobSubmitter(downloader)

    submitter.submit(URL, str(tmp_path / "demo.mp4"))
    await asyncio.sleep(0.01)
    assert len(submitter.pending_jobs) == 1

    await submitter.close()
    assert submitter.pending_jobs == []


class PartialDownloader:
    """Writes a few bytes, then waits or fails before the transfer completes."""

    def __init__(self, error: BaseException | None = None):
        self.error = error
        self.started = asyncio.Event()

    async def download_file(self, url: str, destination_path: str) -> int:
        with open(destination_path, "wb") as f:
            f.write(b"partial")
        self.started.set()
        if self.error:
            raise self.error
        await asyncio.Event().wait()
        return 0


@pytest.mark.asyncio
async def test_cancelled_job_leaves_no_file(tmp_path):
    downloader = PartialDownloader()
    submitter = DownloadJobSubmitter(downloader)
    target = tmp_path / "demo.mp4"

    submitter.submit(URL, str(target))
    await asyncio.wait_for(downloader.started.wait(), timeout=2)
    assert target.exists()

    await submitter.close()

    assert not target.exists()


@pytest.mark.asyncio
async def test_disk_error_leaves_no_file(tmp_path):
    submitter = DownloadJobSubmitter(PartialDownloader(OSError(28, "No space left")))
    _, done = completion_waiter(submitter)
    target = tmp_path / "demo.mp4"

    job_id = submitter.submit(URL, str(target))
    await asyncio.wait_for(done.wait(), timeout=2)

    assert submitter.query_result(job_id).status is JobStatus.FAILED
    assert not target.exists()


@pytest.mark.asyncio
async def test_failed_update_keeps_existing_file(tmp_path):
    target = tmp_path / "demo.mp4"
    target.write_bytes(b"current")
    submitter = DownloadJobSubmitter(PartialDownloader(RuntimeError("bug")))
    _, done = completion_waiter(submitter)

    submitter.submit(URL, str(target))
    await asyncio.wait_for(done.wait(), timeout=2)

    assert target.read_bytes() == b"current"
    assert not (tmp_path / "demo-1.mp4").exists()
