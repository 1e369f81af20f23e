"""
Network transport with progress tracking.

This module provides the single-attempt HTTP primitives the download
orchestrator builds on:
- Streaming downloads of large artifacts to disk
- Progress reporting (bytes, percentage, speed, ETA)
- Small in-memory fetches (signatures, index, mirror list)
- Timeout handling

Retry across sources is the orchestrator's job, so nothing here retries.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException

from zigkit.core.exceptions import DownloadError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
USER_AGENT = "zigkit"


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    def __str__(self) -> str:
        """Format progress for display."""
        return format_progress(self)


ProgressCallback = Callable[[DownloadProgress], None]


def _get(
    url: str,
    timeout: float,
    stream: bool,
    session: Optional[requests.Session] = None,
) -> requests.Response:
    getter = session.get if session is not None else requests.get
    response = getter(
        url,
        stream=stream,
        timeout=timeout,
        allow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )
    response.raise_for_status()
    return response


def download_file(
    url: str,
    destination: Path,
    progress_callback: Optional[ProgressCallback] = None,
    timeout: float = 30,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Stream a URL to a local file in a single attempt.

    Args:
        url: URL to download from
        destination: Local path to save file (overwritten)
        progress_callback: Optional callback for progress updates; only
            called when the server announces a content length
        timeout: Connect/read timeout in seconds
        session: Optional requests session to reuse connections

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: On any transport or HTTP error. The partial file is
            removed before raising.
        ValueError: If URL or destination is invalid

    Example:
        >>> def on_progress(progress):
        ...     print(f"Downloaded {progress.percentage:.1f}%")
        >>> download_file(url, Path("zig.tar.xz"), progress_callback=on_progress)
    """
    if not url:
        raise ValueError("URL cannot be empty")

    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Downloading from {url}")

    try:
        response = _get(url, timeout=timeout, stream=True, session=session)
        with response:
            content_length = response.headers.get("content-length")
            total_size = int(content_length) if content_length else 0

            downloaded = 0
            start_time = time.time()
            last_progress_time = start_time

            with open(destination, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    f.write(chunk)
                    downloaded += len(chunk)

                    # Report progress (max once per 0.5 seconds to avoid spam)
                    current_time = time.time()
                    if (
                        progress_callback
                        and total_size > 0
                        and (
                            current_time - last_progress_time >= 0.5
                            or downloaded == total_size
                        )
                    ):
                        elapsed = current_time - start_time
                        speed = downloaded / elapsed if elapsed > 0 else 0
                        remaining = max(total_size - downloaded, 0)
                        eta = remaining / speed if speed > 0 else 0

                        progress_callback(
                            DownloadProgress(
                                bytes_downloaded=downloaded,
                                total_bytes=total_size,
                                percentage=downloaded / total_size * 100,
                                speed_bps=speed,
                                eta_seconds=eta,
                            )
                        )
                        last_progress_time = current_time

    except (RequestException, OSError, ValueError) as e:
        destination.unlink(missing_ok=True)
        raise DownloadError(f"Failed to download {url}: {e}") from e

    if total_size and downloaded != total_size:
        destination.unlink(missing_ok=True)
        raise DownloadError(
            f"Incomplete download from {url}: got {downloaded} of {total_size} bytes"
        )

    logger.debug(f"Download complete: {destination} ({downloaded} bytes)")
    return destination


def fetch_bytes(
    url: str,
    timeout: float = 30,
    session: Optional[requests.Session] = None,
) -> bytes:
    """
    Fetch a small resource fully into memory.

    Raises:
        DownloadError: On any transport or HTTP error
    """
    logger.debug(f"Fetching {url}")
    try:
        response = _get(url, timeout=timeout, stream=False, session=session)
        return response.content
    except RequestException as e:
        raise DownloadError(f"Failed to fetch {url}: {e}") from e


def fetch_text(
    url: str,
    timeout: float = 30,
    session: Optional[requests.Session] = None,
) -> str:
    """Fetch a small text resource, decoded as UTF-8."""
    return fetch_bytes(url, timeout=timeout, session=session).decode(
        "utf-8", errors="replace"
    )


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    else:
        # Unknown total size
        return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"
