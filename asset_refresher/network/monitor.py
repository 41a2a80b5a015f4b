"""
Tracks network connectivity and notifies one-shot subscribers when it returns.
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import suppress

import aiohttp

log = logging.getLogger(__name__)


class Subscription:
    """Handle for a pending "became connected" callback."""

    def __init__(self, monitor: "NetworkMonitor", callback: Callable[[], None]):
        self._monitor = monitor
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        """Deregisters the callback. Safe to call more than once."""
        if self.active:
            self.active = False
            self._monitor._discard(self)


class NetworkMonitor:
    """
    Observes connectivity transitions.

    Connectivity is learned either from the built-in polling loop, which sends a
    lightweight HEAD request to `probe_url`, or from a host that calls `report()`
    with its own signal.
    """

    def __init__(
        self,
        probe_url: str | None = None,
        poll_interval: float = 5.0,
        probe_timeout: float = 5.0,
        initially_connected: bool = False,
    ):
        """
        Args:
            probe_url: URL probed by the polling loop. Required for `start()`.
            poll_interval: Seconds between probes.
            probe_timeout: Total timeout for a single probe.
            initially_connected: State assumed until the first observation.
        """
        self.probe_url = probe_url
        self.poll_interval = poll_interval
        self.probe_timeout = probe_timeout
        self._connected = initially_connected
        self._subscriptions: list[Subscription] = []
        self._session: aiohttp.ClientSession | None = None
        self._poll_task: asyncio.Task | None = None

    def is_connected(self) -> bool:
        """The most recently observed connectivity. Never blocks."""
        return self._connected

    def subscribe_until_connected(self, callback: Callable[[], None]) -> Subscription:
        """
        Registers `callback` to run once, on the next transition to connected.

        A subscription made while already connected waits for the next
        transition; callers should check `is_connected()` first.
        """
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    def _discard(self, subscription: Subscription) -> None:
        with suppress(ValueError):
            self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def report(self, connected: bool) -> None:
        """Feeds a connectivity observation, firing subscribers on offline->online."""
        was_connected = self._connected
        self._connected = connected
        if connected == was_connected:
            return

        log.info(
            "[green]Network connection available.[/green]"
            if connected
            else "[yellow]Network connection lost.[/yellow]"
        )
        if not connected:
            return

        pending, self._subscriptions = self._subscriptions, []
        for subscription in pending:
            if not subscription.active:
                continue
            subscription.active = False
            try:
                subscription.callback()
            except Exception:
                log.exception("Network subscriber raised an exception")

    async def probe(self) -> bool:
        """Performs one connectivity probe and returns the result."""
        if not self.probe_url:
            return self._connected
        await self._initialize_session()
        try:
            async with self._session.head(self.probe_url, allow_redirects=False):
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"Connectivity probe to {self.probe_url} failed: {e}")
            return False

    async def _initialize_session(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.probe_timeout)
            )

    async def start(self) -> None:
        """Takes an initial reading, then keeps polling in the background."""
        if not self.probe_url:
            raise ValueError("A probe_url is required to poll connectivity.")
        if self._poll_task is None or self._poll_task.done():
            self._connected = await self.probe()
            self._poll_task = asyncio.create_task(self._poll_loop())
            log.debug(
                f"Started connectivity polling (connected={self._connected})."
            )

    async def _poll_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.poll_interval)
                self.report(await self.probe())
            except asyncio.CancelledError:
                log.debug("Connectivity polling cancelled.")
                break

    async def stop(self) -> None:
        """Stops polling, drops subscribers and closes the probe session."""
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._poll_task
        self._poll_task = None
        for subscription in list(self._subscriptions):
            subscription.cancel()
        if self._session and not self._session.closed:
            await self._session.close()
