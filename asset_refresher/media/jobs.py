"""
An asynchronous job interface over the downloader: jobs are submitted, run in
the background, and announce their completion to listeners by job id.
"""

import asyncio
import itertools
import logging
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path

import aiohttp

from asset_refresher.models.state import DownloadJob, JobResult, JobStatus

from .downloader import Downloader, close_connection_pool, remove_partial

log = logging.getLogger(__name__)

CompletionListener = Callable[[int], None]


def resolve_destination(destination_path: str | Path) -> Path:
    """
    Picks the path a job will write to. An existing file is never overwritten;
    the first free numbered sibling ("video-1.mp4", "video-2.mp4", ...) is
    used instead.
    """
    destination = Path(destination_path)
    if not destination.exists():
        return destination
    n = 1
    while True:
        candidate = destination.with_name(f"{destination.stem}-{n}{destination.suffix}")
        if not candidate.exists():
            return candidate
        n += 1


class DownloadJobSubmitter:
    """
    Runs download jobs in the background and reports their results.

    Usage:
        submitter = DownloadJobSubmitter(Downloader())
        submitter.add_completion_listener(lambda job_id: ...)
        job_id = submitter.submit(url, "/data/video.mp4")
        ...
        result = submitter.query_result(job_id)
    """

    def __init__(self, downloader: Downloader | None = None):
        self.downloader = downloader or Downloader()
        self._ids = itertools.count(1)
        self._jobs: dict[int, DownloadJob] = {}
        self._results: dict[int, JobResult] = {}
        self._tasks: dict[int, asyncio.Task] = {}
        self._listeners: list[CompletionListener] = []

    def add_completion_listener(self, listener: CompletionListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_completion_listener(self, listener: CompletionListener) -> None:
        with suppress(ValueError):
            self._listeners.remove(listener)

    def submit(self, url: str, destination_path: str) -> int:
        """
        Enqueues a transfer of `url` to `destination_path` and returns its job id.

        Must be called from within a running event loop. The call returns
        immediately; completion is announced to the listeners later.
        """
        job_id = next(self._ids)
        job = DownloadJob(job_id=job_id, url=url, target_path=str(destination_path))
        self._jobs[job_id] = job
        self._results[job_id] = JobResult(JobStatus.RUNNING)
        self._tasks[job_id] = asyncio.get_running_loop().create_task(
            self._run(job), name=f"download-job-{job_id}"
        )
        log.debug(f"Submitted download job {job_id}: {url} -> {destination_path}")
        return job_id

    def query_result(self, job_id: int) -> JobResult:
        """Returns the status of a job and, if it succeeded, where it was written."""
        return self._results.get(job_id, JobResult(JobStatus.UNKNOWN))

    def get_job(self, job_id: int) -> DownloadJob | None:
        return self._jobs.get(job_id)

    @property
    def pending_jobs(self) -> list[int]:
        return [job_id for job_id, task in self._tasks.items() if not task.done()]

    async def _run(self, job: DownloadJob) -> None:
        destination: Path | None = None
        result = JobResult(JobStatus.FAILED)
        try:
            # No await until the reserved name is recorded in `destination`
            destination = self._prepare_destination(job)
            size = await self.downloader.download_file(job.url, str(destination))
        except asyncio.CancelledError:
            log.debug(f"Download job {job.job_id} cancelled.")
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            log.warning(f"[yellow]Download job {job.job_id} failed: {e}[/yellow]")
        except Exception:
            log.exception(f"Download job {job.job_id} failed unexpectedly")
        else:
            log.debug(f"Download job {job.job_id} wrote {size} bytes to '{destination}'")
            result = JobResult(JobStatus.SUCCESSFUL, str(destination))
        finally:
            self._tasks.pop(job.job_id, None)
            self._results[job.job_id] = result
            if result.status is not JobStatus.SUCCESSFUL and destination is not None:
                remove_partial(destination)

        self._notify(job.job_id)

    @staticmethod
    def _prepare_destination(job: DownloadJob) -> Path:
        target = Path(job.target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        destination = resolve_destination(target)
        # Reserve the name so a concurrent job cannot pick the same sibling
        destination.touch(exist_ok=False)
        return destination

    def _notify(self, job_id: int) -> None:
        for listener in list(self._listeners):
            try:
                listener(job_id)
            except Exception:
                log.exception(f"Completion listener failed for job {job_id}")

    async def close(self) -> None:
        """Cancels outstanding transfers and releases the connection pool."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
        await close_connection_pool()
