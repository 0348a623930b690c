"""Transfer session: stream one artifact into one update_volume command.

Protocol per artifact:
1. Hash the file (first read) to learn its size and digest.
2. Open a fresh remote session and start ``update_volume`` with that
   header, before any payload is written.
3. Re-open the file (second read) and copy it in two concurrent legs:
   disk -> OS pipe, and pipe -> progress meter -> remote input. Disk and
   network I/O overlap, and the meter sees only the transmission leg.
4. Close the remote input, wait for the exit status, close the session.

Any failure voids the whole artifact; the agent has no resume support.
"""

import logging
import os
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from gadget_flash.flash.commands import update_volume_command
from gadget_flash.flash.errors import (
    ArtifactIOError,
    RemoteCommandError,
    TransportError,
)
from gadget_flash.flash.integrity import DEFAULT_BLOCK_SIZE, compute_file_digest
from gadget_flash.flash.progress import (
    LogProgressSink,
    ProgressReader,
    ProgressSink,
)
from gadget_flash.flash.transport import RemoteTransport, log_remote_output
from gadget_flash.types import TransferOutcome

logger = logging.getLogger(__name__)


@dataclass
class _Leg:
    """Outcome of one copy thread."""

    bytes_copied: int = 0
    read_error: OSError | None = None
    write_error: OSError | None = None
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return any((self.read_error, self.write_error, self.error))


def _copy(source: BinaryIO, sink: BinaryIO, block_size: int, leg: _Leg) -> None:
    while True:
        try:
            chunk = source.read(block_size)
        except OSError as e:
            leg.read_error = e
            return
        if not chunk:
            return
        try:
            sink.write(chunk)
        except OSError as e:
            leg.write_error = e
            return
        leg.bytes_copied += len(chunk)


def _run_leg(
    source: BinaryIO,
    sink: BinaryIO,
    block_size: int,
    leg: _Leg,
    on_exit: Callable[[], None],
) -> None:
    try:
        _copy(source, sink, block_size, leg)
    except Exception as e:  # re-raised by the control thread after join
        leg.error = e
    finally:
        try:
            on_exit()
        except OSError as e:
            if not leg.failed:
                leg.write_error = e


def _stream_payload(
    source: BinaryIO,
    remote_input: BinaryIO,
    meter_for: Callable[[BinaryIO], ProgressReader],
    block_size: int,
    name: str,
) -> tuple[_Leg, _Leg]:
    """Copy ``source`` to ``remote_input`` through an OS pipe.

    Both legs are joined before returning. Whichever leg stops first
    closes its end of the pipe, so the other one cannot block forever.

    Returns:
        Tuple of (disk leg, network leg).
    """
    read_fd, write_fd = os.pipe()
    pipe_reader = os.fdopen(read_fd, "rb")
    pipe_writer = os.fdopen(write_fd, "wb")
    meter = meter_for(pipe_reader)

    disk, network = _Leg(), _Leg()
    threads = [
        threading.Thread(
            target=_run_leg,
            args=(source, pipe_writer, block_size, disk, pipe_writer.close),
            name=f"{name}-disk",
            daemon=True,
        ),
        threading.Thread(
            target=_run_leg,
            args=(meter, remote_input, block_size, network, meter.close),
            name=f"{name}-network",
            daemon=True,
        ),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return disk, network


def transfer_artifact(
    transport: RemoteTransport,
    path: str | Path,
    artifact_type: str,
    *,
    progress: ProgressSink | None = None,
    block_size: int = DEFAULT_BLOCK_SIZE,
    timeout: float | None = None,
) -> TransferOutcome:
    """Stream one artifact to the board's update agent.

    Args:
        transport: Authenticated link to the board.
        path: Local artifact file.
        artifact_type: Volume to write (kernel, fdt, rootfs...).
        progress: Sink receiving upload progress (logs if not given).
        block_size: Chunk size for hashing and copying.
        timeout: Seconds to wait for the agent after the upload.

    Returns:
        TransferOutcome for the artifact.

    Raises:
        ArtifactIOError: Local file could not be read or changed between
            hashing and sending.
        TransportError: Session could not start, or input could not be
            delivered.
        RemoteCommandError: Agent exited non-zero (e.g. checksum mismatch).
    """
    path = Path(path)
    if progress is None:
        progress = LogProgressSink()

    logger.info("Transferring '%s': %s", artifact_type, path)
    size, digest = compute_file_digest(path, block_size)
    command = update_volume_command(artifact_type, size, digest)

    session = transport.open_session()
    try:
        logger.debug("Starting session: %s", command)
        session.start(command)

        try:
            source = path.open("rb")
        except OSError as e:
            logger.error("Failed to open file %s", path)
            raise ArtifactIOError(str(path), f"Failed to open {path}: {e}") from e

        callback = progress.begin(artifact_type, size)
        with source:
            disk, network = _stream_payload(
                source,
                session.stdin,
                lambda stream: ProgressReader(stream, size, callback),
                block_size,
                name=f"transfer-{artifact_type}",
            )

        if disk.read_error is not None or disk.error is not None:
            cause = disk.read_error or disk.error
            logger.error("Failed to copy file to writer: %s", cause)
            raise ArtifactIOError(str(path), f"Failed to read {path}: {cause}") from cause

        delivery_error = (
            network.write_error
            or network.read_error
            or network.error
            or disk.write_error
        )
        try:
            session.close_stdin()
        except TransportError:
            if delivery_error is None:
                raise

        exit_status = session.wait(timeout)
        log_remote_output(session.stdout, session.stderr)

        if exit_status != 0:
            logger.error("'%s' exited with status %d", command, exit_status)
            log_remote_output(session.stdout, session.stderr, logging.ERROR)
            raise RemoteCommandError(
                command, exit_status, session.stdout, session.stderr
            )
        if delivery_error is not None:
            logger.error("Failed to copy reader to stdin: %s", delivery_error)
            raise TransportError(
                f"Failed to send {artifact_type} payload: {delivery_error}"
            ) from delivery_error
        if network.bytes_copied != size:
            raise ArtifactIOError(
                str(path),
                f"{path} changed during transfer: hashed {size} bytes, "
                f"sent {network.bytes_copied}",
            )
    finally:
        session.close()

    logger.debug("Transferred %s: %d bytes", artifact_type, network.bytes_copied)
    return TransferOutcome(
        artifact_type=artifact_type,
        bytes_sent=network.bytes_copied,
        checksum=digest,
        remote_exit_status=exit_status,
    )


__all__ = ["transfer_artifact"]
