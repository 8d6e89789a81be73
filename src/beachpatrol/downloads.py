"""Saving browser downloads next to the user's other downloads.

By default Playwright stores downloads under a temporary directory with UUID
names and deletes them when the browser closes.  The server instead saves each
download into the download directory under its suggested name, appending
`` (1)``, `` (2)``, ... when a file with that name already exists.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger("beachpatrol.downloads")


def resolve_download_path(directory: Path, suggested_name: str) -> Path:
    """Return the first path in *directory* that does not exist yet.

    ``report.pdf`` becomes ``report (1).pdf``, ``report (2).pdf``, ... while
    the candidate is taken.  The counter is always applied to the original
    suggested name.  Resolution and creation are not atomic: two downloads
    resolved before either is saved may pick the same name.
    """
    base, ext = os.path.splitext(suggested_name)
    candidate = directory / suggested_name
    counter = 0
    while candidate.exists():
        counter += 1
        candidate = directory / f"{base} ({counter}){ext}"
    return candidate


async def save_download(download: Any, directory: Path) -> Path | None:
    """Save a Playwright ``Download`` into *directory*.

    Returns the saved path, or ``None`` if saving failed.  Failures are logged
    and never raised; the download is left in its failed state in the browser.
    """
    suggested = download.suggested_filename
    logger.info(f"Got download event for: {suggested}")
    save_path = resolve_download_path(directory, suggested)
    logger.info(f"Attempting to download: {suggested} (as {save_path.name}) to {directory}")
    try:
        await download.save_as(save_path)
    except Exception as exc:
        logger.error(f"Failed to download {suggested!r}: {exc}")
        return None
    logger.info(f"Successfully downloaded: {save_path}")
    return save_path
