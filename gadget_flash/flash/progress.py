"""Transfer progress metering.

ProgressReader sits between the disk pipe and the remote command input
and reports how far an upload has come. Reports go to a progress sink:
the log for non-interactive use, or a rich progress bar on the console.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import BinaryIO, Protocol

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TransferSpeedColumn,
)

logger = logging.getLogger(__name__)

# Log a progress line every 10 MiB
LOG_INTERVAL_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class ProgressReport:
    """Snapshot of an upload.

    Attributes:
        bytes_read: Cumulative bytes passed through.
        total_bytes: Expected payload size.
        rate: Bytes per second. Instantaneous while running, the
            average over the whole transfer on the final report.
        done: True on the single terminal report.
    """

    bytes_read: int
    total_bytes: int
    rate: float
    done: bool = False

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 100.0
        return (self.bytes_read / self.total_bytes) * 100


ProgressCallback = Callable[[ProgressReport], None]


class ProgressReader:
    """Byte stream wrapper that reports reads to a callback.

    Bytes are returned exactly as read from the wrapped stream and read
    errors propagate unchanged. A terminal ``done`` report is emitted once,
    on EOF or on close, whichever comes first.
    """

    def __init__(
        self,
        stream: BinaryIO,
        total_bytes: int,
        callback: ProgressCallback,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stream = stream
        self._callback = callback
        self._clock = clock
        self.total_bytes = total_bytes
        self.bytes_read = 0
        self._started_at = clock()
        self._last_time = self._started_at
        self._last_bytes = 0
        self._rate = 0.0
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._stream.closed

    def read(self, size: int = -1) -> bytes:
        data = self._stream.read(size)
        if data:
            self.bytes_read += len(data)
            self._report()
        elif size != 0:
            self._finish()
        return data

    def close(self) -> None:
        self._finish()
        self._stream.close()

    def _report(self) -> None:
        now = self._clock()
        elapsed = now - self._last_time
        if elapsed > 0:
            self._rate = (self.bytes_read - self._last_bytes) / elapsed
            self._last_time = now
            self._last_bytes = self.bytes_read
        self._callback(ProgressReport(self.bytes_read, self.total_bytes, self._rate))

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        elapsed = self._clock() - self._started_at
        rate = self.bytes_read / elapsed if elapsed > 0 else self._rate
        self._callback(
            ProgressReport(self.bytes_read, self.total_bytes, rate, done=True)
        )

    def __enter__(self) -> "ProgressReader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ProgressSink(Protocol):
    """Creates a progress callback for each artifact upload."""

    def begin(self, label: str, total_bytes: int) -> ProgressCallback: ...


class LogProgressSink:
    """Reports upload progress through the logging module."""

    def __init__(self, interval_bytes: int = LOG_INTERVAL_BYTES) -> None:
        self.interval_bytes = interval_bytes

    def begin(self, label: str, total_bytes: int) -> ProgressCallback:
        next_mark = self.interval_bytes

        def callback(report: ProgressReport) -> None:
            nonlocal next_mark
            if report.done:
                logger.info(
                    "%s: sent %d / %d bytes (%.1f%%) at %.1f KiB/s",
                    label,
                    report.bytes_read,
                    report.total_bytes,
                    report.percent,
                    report.rate / 1024,
                )
            elif report.bytes_read >= next_mark:
                logger.debug(
                    "%s: %d / %d bytes (%.1f%%) at %.1f KiB/s",
                    label,
                    report.bytes_read,
                    report.total_bytes,
                    report.percent,
                    report.rate / 1024,
                )
                next_mark = report.bytes_read + self.interval_bytes

        return callback


class RichProgressSink:
    """Draws one rich progress bar per artifact upload."""

    def __init__(self, progress: Progress) -> None:
        self.progress = progress

    def begin(self, label: str, total_bytes: int) -> ProgressCallback:
        task_id: TaskID = self.progress.add_task(label, total=total_bytes)

        def callback(report: ProgressReport) -> None:
            self.progress.update(
                task_id, completed=report.bytes_read, refresh=report.done
            )

        return callback


def make_transfer_progress(console: Console | None = None) -> Progress:
    """Build a rich Progress showing bar, percentage, bytes and speed."""
    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
    )


__all__ = [
    "LOG_INTERVAL_BYTES",
    "LogProgressSink",
    "ProgressCallback",
    "ProgressReader",
    "ProgressReport",
    "ProgressSink",
    "RichProgressSink",
    "make_transfer_progress",
]
