"""
Network download of engine artifacts with progress reporting.

This module provides:
- Streaming HTTP/HTTPS downloads straight to disk
- Mandatory Content-Length validation (the expected size drives progress)
- A background progress reporter polling the destination file size at a
  bounded rate, with a synchronous stop-and-flush handshake

There is no retry, resume or timeout: a failed download is fatal
for the whole invocation.
"""

import logging
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import requests
from requests.exceptions import RequestException

from hoverkit.core.exceptions import HoverKitError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# Flutter promises 60fps, so does the progress bar.
PROGRESS_INTERVAL = 1.0 / 60


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    elapsed_seconds: float

    def __str__(self) -> str:
        """Format progress for display."""
        return format_progress(self)


@dataclass(frozen=True)
class DownloadTask:
    """A single artifact transfer."""

    url: str
    destination: Path
    expected_size: int


class DownloadError(HoverKitError):
    """Exception raised when download fails."""

    pass


ProgressCallback = Callable[[DownloadProgress], None]


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> format_progress(DownloadProgress(50, 100, 50.0, 1.0))
        '50 % / 100 %'
    """
    return f"{progress.percentage:.0f} % / 100 %"


def render_progress(progress: DownloadProgress) -> None:
    """Render progress on a single, continuously rewritten terminal line."""
    # '\033[2K\r' clears the line so the next render overwrites this one
    sys.stdout.write(f"\033[2K\r {format_progress(progress)}")
    sys.stdout.flush()


class ProgressReporter:
    """
    Report the progress of a download running on the calling thread.

    A background thread polls the size of the destination file at most once
    per interval and hands a DownloadProgress to the callback. Reporting is
    cosmetic: a failed stat is logged and reported as zero bytes.

    stop() is synchronous. It signals completion, waits until the thread has
    performed its final report and exited, and only then returns, so nothing
    is reported after the caller moves on.

    Example:
        >>> with ProgressReporter(path, expected_size=1024, callback=print):
        ...     write_the_file(path)
    """

    def __init__(
        self,
        path: Path,
        expected_size: int,
        callback: ProgressCallback = render_progress,
        interval: float = PROGRESS_INTERVAL,
    ):
        self.path = Path(path)
        self.expected_size = expected_size
        self.callback = callback
        self.interval = interval
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._start_time = 0.0

    def start(self) -> "ProgressReporter":
        """Start the reporting thread."""
        if self._thread is not None:
            raise RuntimeError("Progress reporter already started")
        self._start_time = time.time()
        self._thread = threading.Thread(
            target=self._run, name=f"progress-{self.path.name}", daemon=True
        )
        self._thread.start()
        return self

    def stop(self) -> None:
        """Request a final report and wait until the reporter has stopped."""
        if self._thread is None:
            return
        self._done.set()
        self._thread.join()
        self._thread = None

    def __enter__(self) -> "ProgressReporter":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def _run(self) -> None:
        while True:
            completed = self._done.wait(self.interval)
            self._report()
            if completed:
                return

    def _report(self) -> None:
        try:
            size = self.path.stat().st_size
        except OSError as e:
            logger.warning(f"{e}")
            size = 0

        if self.expected_size > 0:
            percentage = size / self.expected_size * 100
        else:
            percentage = 100.0

        try:
            self.callback(
                DownloadProgress(
                    bytes_downloaded=size,
                    total_bytes=self.expected_size,
                    percentage=percentage,
                    elapsed_seconds=time.time() - self._start_time,
                )
            )
        except Exception as e:
            logger.debug(f"Progress callback failed: {e}")


def _expected_size(response: requests.Response) -> int:
    """Read the declared body size of a response."""
    content_length = response.headers.get("Content-Length")
    if content_length is None:
        raise DownloadError(
            f"Failed to get Content-Length header for {response.url}: header missing"
        )
    try:
        expected_size = int(content_length)
    except ValueError as e:
        raise DownloadError(
            f"Failed to get Content-Length header for {response.url}: "
            f"invalid value {content_length!r}"
        ) from e
    if expected_size < 0:
        raise DownloadError(
            f"Failed to get Content-Length header for {response.url}: "
            f"negative value {expected_size}"
        )
    return expected_size


def fetch(
    url: str,
    destination: Union[str, Path],
    progress_callback: Optional[ProgressCallback] = render_progress,
) -> Path:
    """
    Stream a remote resource to a local file.

    The destination is created (or truncated) and the response body is
    written to it chunk by chunk. While the transfer runs, progress is
    reported against the response's Content-Length.

    Args:
        url: URL to download from
        destination: Local path to save the file to
        progress_callback: Callback receiving DownloadProgress, None to disable

    Returns:
        Path to the downloaded file

    Raises:
        DownloadError: On connection failure, non-2xx status, a missing or
            invalid Content-Length header, or a local write failure

    Example:
        >>> fetch("https://example.com/artifacts.zip", Path("/tmp/artifacts.zip"))
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)
    start = time.time()
    logger.debug(f"Downloading {url} to {destination}")

    try:
        response = requests.get(url, stream=True, allow_redirects=True)
    except RequestException as e:
        raise DownloadError(f"Failed to download {url}: {e}") from e

    with response:
        try:
            response.raise_for_status()
        except RequestException as e:
            raise DownloadError(f"Failed to download {url}: {e}") from e

        expected_size = _expected_size(response)
        task = DownloadTask(url=url, destination=destination, expected_size=expected_size)
        _stream_to_file(response, task, progress_callback)

    elapsed = time.time() - start
    logger.info(f"\033[2K\rDownload completed in {elapsed:.2f}s")
    return destination


def _stream_to_file(
    response: requests.Response,
    task: DownloadTask,
    progress_callback: Optional[ProgressCallback],
) -> None:
    try:
        out = open(task.destination, "wb")
    except OSError as e:
        raise DownloadError(f"Failed to create {task.destination}: {e}") from e

    reporter = None
    if progress_callback is not None:
        reporter = ProgressReporter(task.destination, task.expected_size, progress_callback)
        reporter.start()

    try:
        with out:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    out.write(chunk)
    except RequestException as e:
        raise DownloadError(f"Failed to download {task.url}: {e}") from e
    except OSError as e:
        raise DownloadError(f"Failed to write {task.destination}: {e}") from e
    finally:
        if reporter is not None:
            reporter.stop()


__all__ = [
    "DownloadProgress",
    "DownloadTask",
    "DownloadError",
    "ProgressCallback",
    "ProgressReporter",
    "format_progress",
    "render_progress",
    "fetch",
]
