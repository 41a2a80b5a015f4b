"""
Moves freshly downloaded files into the canonical asset path and removes the
stale duplicates the download subsystem leaves beside it.
"""

import logging
import os
import re
from pathlib import Path

from asset_refresher.exceptions import PromotionFailedError

log = logging.getLogger(__name__)

# Numbered duplicates created when the destination already existed: "video-1"
_NUMBERED_SUFFIX = re.compile(r"-\d+$")


def file_base_name(file_name: str) -> str:
    """Returns the file name without its last extension."""
    pos = file_name.rfind(".")
    return file_name[:pos] if pos > 0 else file_name


def is_sibling_duplicate(file_name: str, canonical_name: str) -> bool:
    """
    True if `file_name` is another copy of `canonical_name`: same base name, or
    the same base name with a numeric "-N" suffix, regardless of extension.
    """
    base = file_base_name(file_name)
    canonical_base = file_base_name(canonical_name)
    if base == canonical_base:
        return True
    return (
        base.startswith(canonical_base)
        and _NUMBERED_SUFFIX.fullmatch(base[len(canonical_base) :]) is not None
    )


def swap_into_place(downloaded_path: str | Path, canonical_path: str | Path) -> None:
    """
    Replaces the canonical file with the downloaded one in a single rename, so
    the previous asset stays on disk until the new one takes its place.

    Raises:
        PromotionFailedError: If the download is missing or the rename failed.
        Both files are then left as they were.
    """
    downloaded = Path(downloaded_path)
    canonical = Path(canonical_path)
    if os.path.abspath(downloaded) == os.path.abspath(canonical):
        return

    if not downloaded.is_file():
        raise PromotionFailedError(f"Downloaded file '{downloaded}' does not exist.")

    try:
        downloaded.replace(canonical)
    except OSError as e:
        raise PromotionFailedError(
            f"Failed to move '{downloaded}' into place at '{canonical}': {e}"
        ) from e

    log.debug(f"Moved '{downloaded.name}' to '{canonical}'.")


def purge_siblings(canonical_path: str | Path) -> list[Path]:
    """
    Deletes every duplicate of the canonical file in its directory, keeping the
    canonical file itself and anything unrelated.

    Returns:
        The paths that were removed.
    """
    canonical = Path(canonical_path)
    directory = canonical.parent
    if not directory.is_dir():
        return []

    removed: list[Path] = []
    for entry in directory.iterdir():
        if not entry.is_file() or entry.name == canonical.name:
            continue
        if not is_sibling_duplicate(entry.name, canonical.name):
            continue
        try:
            entry.unlink()
            removed.append(entry)
        except OSError as e:
            log.warning(f"Failed to remove stale copy '{entry.name}': {e}")

    if removed:
        log.debug(f"Removed {len(removed)} stale copies of '{canonical.name}'.")
    return removed


def promote(downloaded_path: str | Path, canonical_path: str | Path) -> bool:
    """
    Makes the downloaded file the canonical asset and cleans up duplicates.

    A download that already sits at the canonical path is left untouched and
    nothing is deleted.
    """
    if os.path.abspath(downloaded_path) == os.path.abspath(canonical_path):
        return True
    try:
        swap_into_place(downloaded_path, canonical_path)
    except PromotionFailedError as e:
        log.error(str(e))
        return False
    purge_siblings(canonical_path)
    return True
