"""
The refresh coordinator: a state machine that makes sure the asset is present
and current, driven by a single serialized event queue.
"""

import asyncio
import logging
import os
from contextlib import suppress
from pathlib import Path

from asset_refresher.exceptions import PromotionFailedError
from asset_refresher.media.jobs import DownloadJobSubmitter
from asset_refresher.models.config import DEFAULT_CLEANUP_DELAY, RefreshConfig
from asset_refresher.models.state import (
    ActiveJob,
    CheckForUpdate,
    CleanupDownloadDir,
    CoordinatorEvent,
    CoordinatorState,
    DownloadComplete,
    JobKind,
    JobStatus,
    NetworkAvailable,
    ResultListener,
    RevalidationResult,
)
from asset_refresher.network.monitor import NetworkMonitor, Subscription
from asset_refresher.network.revalidation import RevalidationChecker
from asset_refresher.storage.promotion import purge_siblings, swap_into_place
from asset_refresher.utils.structured_logger import RefreshLogger

log = logging.getLogger(__name__)

_RESTING_STATES = (CoordinatorState.SETTLED, CoordinatorState.IDLE)
_WAITING_STATES = (
    CoordinatorState.AWAITING_NETWORK_FOR_INITIAL_DOWNLOAD,
    CoordinatorState.AWAITING_NETWORK_FOR_UPDATE_CHECK,
)


class RefreshCoordinator:
    """
    Ensures a single asset exists at `asset_path` and stays fresh.

    On start the coordinator either revalidates an existing asset or fetches it
    for the first time, waiting for connectivity when needed. Every inbound
    signal (network returning, a job finishing, the cleanup timer) is turned
    into an event on one queue, and a single worker task applies the events in
    order; state is never mutated from the signal's own context.

    The host is told about two outcomes only: `on_error()` when the asset is
    missing and the network is down at start, and `on_file_downloaded(path)`
    after every successful initial or update download.
    """

    def __init__(
        self,
        download_url: str,
        asset_path: str | Path,
        submitter: DownloadJobSubmitter,
        monitor: NetworkMonitor,
        checker: RevalidationChecker,
        listener: ResultListener,
        preload_path: str | Path | None = None,
        cleanup_delay: float = DEFAULT_CLEANUP_DELAY,
        event_logger: RefreshLogger | None = None,
    ):
        self.download_url = download_url
        self.asset_path = Path(asset_path)
        self.preload_path = Path(preload_path) if preload_path else None
        self.submitter = submitter
        self.monitor = monitor
        self.checker = checker
        self.listener = listener
        self.cleanup_delay = cleanup_delay
        self.event_logger = event_logger

        self._state = CoordinatorState.IDLE
        self._active_job: ActiveJob | None = None
        self._queue: asyncio.Queue[CoordinatorEvent] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._subscription: Subscription | None = None
        self._cleanup_handle: asyncio.TimerHandle | None = None
        self._quiescent = asyncio.Event()
        self._parked = asyncio.Event()

    @classmethod
    def from_config(
        cls,
        config: RefreshConfig,
        submitter: DownloadJobSubmitter,
        monitor: NetworkMonitor,
        checker: RevalidationChecker,
        listener: ResultListener,
        event_logger: RefreshLogger | None = None,
    ) -> "RefreshCoordinator":
        return cls(
            download_url=config.download_url,
            asset_path=config.asset_path,
            submitter=submitter,
            monitor=monitor,
            checker=checker,
            listener=listener,
            preload_path=config.preload_path,
            cleanup_delay=config.cleanup_delay,
            event_logger=event_logger,
        )

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def active_job(self) -> ActiveJob | None:
        return self._active_job

    def asset_exists(self) -> bool:
        """True if the canonical file or the preloaded copy is on disk."""
        if self.asset_path.exists():
            return True
        return self.preload_path is not None and self.preload_path.exists()

    def _known_last_modified(self) -> float | None:
        try:
            return os.path.getmtime(self.asset_path)
        except OSError:
            return None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        """
        Starts the worker and makes the initial decision. Must be awaited from
        the event loop the coordinator will live on, and only once.
        """
        if self._worker is not None:
            raise RuntimeError("Coordinator has already been started.")

        self.submitter.add_completion_listener(self._on_job_complete)
        self._worker = asyncio.create_task(self._run_worker(), name="refresh-coordinator")

        if self.asset_exists():
            log.debug(
                f"Asset already present at '{self.asset_path}' or "
                f"'{self.preload_path}', checking for an update..."
            )
            self._set_state(CoordinatorState.CHECKING_FOR_UPDATE, "start")
            self._post(CheckForUpdate())
        elif not self.monitor.is_connected():
            log.warning(
                "[yellow]Asset is missing and no network is available; "
                "waiting for connectivity.[/yellow]"
            )
            self._set_state(CoordinatorState.AWAITING_NETWORK_FOR_INITIAL_DOWNLOAD, "start")
            self.listener.on_error()
            self._subscribe_for_network()
        else:
            self._start_download(JobKind.INITIAL, "start")
        self._update_quiescence()

    run = start

    async def stop(self) -> None:
        """Cancels timers, subscriptions and the worker. Safe to call twice."""
        if self._cleanup_handle is not None:
            self._cleanup_handle.cancel()
            self._cleanup_handle = None
        self._cancel_subscription()
        self.submitter.remove_completion_listener(self._on_job_complete)
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            with suppress(asyncio.CancelledError):
                await self._worker

    async def __aenter__(self) -> "RefreshCoordinator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
        return False

    def request_update_check(self) -> bool:
        """
        Asks for another revalidation pass. Honoured only while nothing is in
        progress, no cleanup is pending and an asset exists.

        Returns:
            True if a check was queued.
        """
        if self._state not in _RESTING_STATES or not self.asset_exists():
            log.debug(f"Ignoring update check request in state {self._state.value}.")
            return False
        if self._cleanup_handle is not None:
            log.debug("Ignoring update check request while cleanup is pending.")
            return False
        self._post(CheckForUpdate())
        return True

    async def wait_until_quiescent(self, timeout: float | None = None) -> None:
        """
        Waits until no events are queued, no cleanup is pending and the state is
        SETTLED or IDLE.

        Raises:
            asyncio.TimeoutError: If `timeout` elapses first.
        """
        await asyncio.wait_for(self._quiescent.wait(), timeout)

    async def wait_until_parked(self, timeout: float | None = None) -> None:
        """
        Waits until nothing more will happen without outside help: either
        quiescent, or idle in one of the states that wait for the network.

        Raises:
            asyncio.TimeoutError: If `timeout` elapses first.
        """
        await asyncio.wait_for(self._parked.wait(), timeout)

    # ------------------------------------------------------------------ #
    # Event plumbing
    # ------------------------------------------------------------------ #

    def _post(self, event: CoordinatorEvent) -> None:
        self._quiescent.clear()
        self._parked.clear()
        self._queue.put_nowait(event)

    def _on_job_complete(self, job_id: int) -> None:
        self._post(DownloadComplete(job_id))

    def _on_network_callback(self) -> None:
        self._post(NetworkAvailable())

    def _post_cleanup(self) -> None:
        self._cleanup_handle = None
        self._post(CleanupDownloadDir())

    async def _run_worker(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            except Exception:
                log.exception(f"Error while handling {type(event).__name__}")
                self._recover_from_handler_error()
            finally:
                self._queue.task_done()
            self._update_quiescence()

    async def _dispatch(self, event: CoordinatorEvent) -> None:
        if isinstance(event, CheckForUpdate):
            await self._check_for_update()
        elif isinstance(event, NetworkAvailable):
            await self._on_network_available()
        elif isinstance(event, DownloadComplete):
            await self._on_download_complete(event.job_id)
        elif isinstance(event, CleanupDownloadDir):
            await self._cleanup_download_dir()
        else:
            log.warning(f"Unknown coordinator event: {event!r}")

    def _update_quiescence(self) -> None:
        if not (
            self._queue.empty()
            and self._cleanup_handle is None
            and self._active_job is None
        ):
            return
        if self._state in _RESTING_STATES:
            self._quiescent.set()
            self._parked.set()
        elif self._state in _WAITING_STATES:
            self._parked.set()

    def _recover_from_handler_error(self) -> None:
        if self._active_job is not None:
            return
        if self._state in _RESTING_STATES or self._state in _WAITING_STATES:
            return
        fallback = (
            CoordinatorState.SETTLED if self.asset_exists() else CoordinatorState.IDLE
        )
        self._set_state(fallback, "handler_error")

    def _set_state(self, new_state: CoordinatorState, trigger: str) -> None:
        previous, self._state = self._state, new_state
        if previous is new_state:
            return
        log.debug(f"Coordinator state {previous.value} -> {new_state.value} ({trigger})")
        if self.event_logger:
            self.event_logger.state_changed(previous.value, new_state.value, trigger)

    def _subscribe_for_network(self) -> None:
        if self._subscription is not None and self._subscription.active:
            return
        self._subscription = self.monitor.subscribe_until_connected(
            self._on_network_callback
        )

    def _cancel_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def _start_download(self, kind: JobKind, trigger: str) -> None:
        if self._active_job is not None:
            log.warning(
                f"Not starting a {kind.value} download: job "
                f"{self._active_job.job_id} is still pending."
            )
            return

        job_id = self.submitter.submit(self.download_url, str(self.asset_path))
        self._active_job = ActiveJob(kind, job_id)
        if kind is JobKind.INITIAL:
            log.info(f"[cyan]Downloading asset from {self.download_url}...[/cyan]")
            self._set_state(CoordinatorState.DOWNLOADING_INITIAL, trigger)
        else:
            log.info(f"[cyan]Downloading updated asset from {self.download_url}...[/cyan]")
            self._set_state(CoordinatorState.DOWNLOADING_UPDATE, trigger)
        if self.event_logger:
            self.event_logger.job_submitted(
                job_id, kind.value, self.download_url, str(self.asset_path)
            )

    async def _check_for_update(self) -> None:
        if self._active_job is not None:
            log.debug("Skipping update check while a download is pending.")
            return

        if not self.monitor.is_connected():
            self._set_state(
                CoordinatorState.AWAITING_NETWORK_FOR_UPDATE_CHECK, "network_down"
            )
            self._subscribe_for_network()
            return

        self._set_state(CoordinatorState.CHECKING_FOR_UPDATE, "check_for_update")
        known_last_modified = self._known_last_modified()
        result = await self.checker.check_for_update(
            self.download_url, known_last_modified
        )
        if self.event_logger:
            self.event_logger.revalidated(
                self.download_url, result.value, known_last_modified
            )

        if result is RevalidationResult.UNCHANGED:
            self._set_state(CoordinatorState.SETTLED, "not_modified")
            return
        self._start_download(JobKind.UPDATE, "stale")

    async def _on_network_available(self) -> None:
        self._subscription = None
        if self._state is CoordinatorState.AWAITING_NETWORK_FOR_INITIAL_DOWNLOAD:
            self._start_download(JobKind.INITIAL, "network_available")
        elif self._state is CoordinatorState.AWAITING_NETWORK_FOR_UPDATE_CHECK:
            self._set_state(CoordinatorState.CHECKING_FOR_UPDATE, "network_available")
            await self._check_for_update()
        else:
            log.debug(f"Network available in state {self._state.value}; nothing to do.")

    async def _on_download_complete(self, job_id: int) -> None:
        active = self._active_job
        if active is None or active.job_id != job_id:
            log.debug(f"Ignoring completion of unrelated download job {job_id}.")
            return
        self._active_job = None

        result = self.submitter.query_result(job_id)
        if self.event_logger:
            self.event_logger.job_finished(
                job_id, active.kind.value, result.status.value, result.local_path
            )
        # A job that did not succeed leaves the asset in its last good state
        fallback = (
            CoordinatorState.IDLE
            if active.kind is JobKind.INITIAL
            else CoordinatorState.SETTLED
        )

        if result.status is not JobStatus.SUCCESSFUL or not result.local_path:
            log.warning(
                f"[yellow]The {active.kind.value} download did not complete "
                f"(status: {result.status.value}).[/yellow]"
            )
            self._set_state(fallback, "transfer_failed")
            return

        self._cancel_subscription()
        try:
            await asyncio.to_thread(swap_into_place, result.local_path, self.asset_path)
        except PromotionFailedError as e:
            log.error(f"[red]{e}[/red]")
            if self.event_logger:
                self.event_logger.promoted(result.local_path, str(self.asset_path), False)
            self._set_state(fallback, "promotion_failed")
            return
        if self.event_logger:
            self.event_logger.promoted(result.local_path, str(self.asset_path), True)

        log.info(f"[green]✓ Asset ready at '{self.asset_path}'.[/green]")
        self._set_state(CoordinatorState.SETTLED, "download_complete")
        self.listener.on_file_downloaded(str(self.asset_path))
        self._schedule_cleanup()

    def _schedule_cleanup(self) -> None:
        if self._cleanup_handle is not None:
            self._cleanup_handle.cancel()
        loop = asyncio.get_running_loop()
        self._cleanup_handle = loop.call_later(self.cleanup_delay, self._post_cleanup)

    async def _cleanup_download_dir(self) -> None:
        if self._active_job is not None:
            # The job may be writing to a numbered sibling
            log.debug(
                f"Postponing cleanup while download job {self._active_job.job_id} "
                "is pending."
            )
            self._schedule_cleanup()
            return
        removed = await asyncio.to_thread(purge_siblings, self.asset_path)
        if self.event_logger:
            self.event_logger.siblings_purged(
                str(self.asset_path), [str(p) for p in removed]
            )
