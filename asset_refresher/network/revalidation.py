"""
Conditional HTTP probe that tells whether the remote asset changed since a
known modification time, without transferring it.
"""

import asyncio
import logging
from email.utils import formatdate

import aiohttp

from asset_refresher.exceptions import RevalidationProbeError
from asset_refresher.models.state import RevalidationResult

log = logging.getLogger(__name__)


def format_http_date(timestamp: float) -> str:
    """Formats a POSIX timestamp as an RFC 7231 HTTP-date."""
    return formatdate(timestamp, usegmt=True)


class RevalidationChecker:
    """
    Sends `If-Modified-Since` requests and interprets the answer conservatively:
    only an explicit successful response means the remote copy is newer.
    """

    def __init__(self, request_timeout: float = 30.0):
        self.request_timeout = request_timeout
        self._session: aiohttp.ClientSession | None = None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=self.request_timeout, connect=min(15, self.request_timeout)
                ),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _probe(self, url: str, known_last_modified: float | None) -> int:
        """
        Issues the conditional request and returns the status code. The body is
        never read and the connection is released on every path.

        Raises:
            RevalidationProbeError: On any transport-level failure.
        """
        headers = {}
        if known_last_modified:
            headers["If-Modified-Since"] = format_http_date(known_last_modified)

        await self._initialize_session()
        try:
            async with self._session.get(
                url, headers=headers, allow_redirects=True
            ) as response:
                return response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RevalidationProbeError(f"{type(e).__name__}: {e}") from e

    async def check_for_update(
        self, url: str, known_last_modified: float | None
    ) -> RevalidationResult:
        """
        Asks the server whether `url` changed after `known_last_modified`.

        Args:
            url: The asset URL.
            known_last_modified: POSIX mtime of the local copy, or None when no
            timestamp is known (the request is then unconditional).

        Returns:
            STALE only for a 2xx answer; UNCHANGED for 304, for any other status
            and for transport errors.
        """
        try:
            status = await self._probe(url, known_last_modified)
        except RevalidationProbeError as e:
            log.error(f"Error while checking for an updated asset: {e}")
            return RevalidationResult.UNCHANGED

        if status == 304:
            log.debug(f"Asset at {url} not modified.")
            return RevalidationResult.UNCHANGED
        if 200 <= status < 300:
            log.info(f"[cyan]A newer version of the asset is available ({status}).[/cyan]")
            return RevalidationResult.STALE

        log.warning(
            f"[yellow]Unexpected status {status} while revalidating {url}; "
            "keeping the current asset.[/yellow]"
        )
        return RevalidationResult.UNCHANGED
