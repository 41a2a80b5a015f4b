"""
Handles the low-level transfer of the asset over HTTP into a local file.
"""

import asyncio
import logging
import os

import aiofiles
import aiohttp

log = logging.getLogger(__name__)

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(request_timeout: float = 30.0) -> aiohttp.ClientSession:
    """
    Gets or creates the shared aiohttp ClientSession used for transfers.

    Only one pool exists for the lifetime of the process; it is reused by every
    download job.

    Args:
        request_timeout: Per-read and connect timeout in seconds. The total
        transfer time is unbounded.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=4,
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=request_timeout, sock_read=request_timeout
        )
        _connection_pool = aiohttp.ClientSession(connector=connector, timeout=timeout)
        log.debug("Created download connection pool.")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


def remove_partial(path: str | os.PathLike) -> None:
    """Deletes an incomplete download. A missing file is not an error."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        log.warning(f"Could not remove partial download '{path}': {e}")


class Downloader:
    """A streaming file downloader with retry logic."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        request_timeout: float = 30.0,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.request_timeout = request_timeout

    async def download_file(self, url: str, destination_path: str) -> int:
        """
        Downloads `url` into `destination_path`, retrying transient failures.

        Returns:
            The number of bytes written.

        Raises:
            aiohttp.ClientError | asyncio.TimeoutError: The last error once all
            attempts are exhausted. No partial file is left behind.
        """
        last_exception: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                session = await get_connection_pool(self.request_timeout)
                async with session.get(url, allow_redirects=True) as response:
                    response.raise_for_status()

                    bytes_downloaded = 0
                    async with aiofiles.open(destination_path, "wb") as f:
                        async for chunk in response.content.iter_chunked(
                            self.CHUNK_SIZE
                        ):
                            await f.write(chunk)
                            bytes_downloaded += len(chunk)
                return bytes_downloaded
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                await asyncio.to_thread(remove_partial, destination_path)
                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{os.path.basename(destination_path)}' failed: {e}. Retrying..."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        if last_exception:
            raise last_exception
        return 0
