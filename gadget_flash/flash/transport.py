"""Remote command transport.

The board's update agent is driven one command per session: every
command gets a fresh channel with its own input, output and error
streams. SSHTransport implements this by spawning one ``ssh`` process
per command; authentication (keys, login) is assumed to be set up.
"""

from __future__ import annotations

import contextlib
import logging
import shlex
import subprocess
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import IO, TYPE_CHECKING, BinaryIO, Protocol

from gadget_flash.flash.errors import TransportError
from gadget_flash.types import CommandResult

if TYPE_CHECKING:
    from gadget_flash.config import Settings

logger = logging.getLogger(__name__)
remote_logger = logging.getLogger("gadget_flash.remote")

# ssh(1) exits with 255 when the connection itself failed
SSH_ERROR_STATUS = 255


class RemoteSession(Protocol):
    """A one-shot channel able to run a single remote command."""

    @property
    def stdin(self) -> BinaryIO: ...

    @property
    def stdout(self) -> str: ...

    @property
    def stderr(self) -> str: ...

    def start(self, command: str) -> None: ...

    def close_stdin(self) -> None: ...

    def wait(self, timeout: float | None = None) -> int: ...

    def close(self) -> None: ...


class RemoteTransport(Protocol):
    """An authenticated link to the board that opens command sessions."""

    def open_session(self) -> RemoteSession: ...


class SSHSession:
    """One ``ssh`` process running one remote command.

    Output and error streams are spooled to temporary files so the
    remote side never blocks on a full pipe while we are busy writing
    its input.
    """

    def __init__(self, argv: Sequence[str]) -> None:
        self._argv = list(argv)
        self._stdout_file: IO[bytes] = tempfile.TemporaryFile()
        self._stderr_file: IO[bytes] = tempfile.TemporaryFile()
        self._process: subprocess.Popen[bytes] | None = None
        self._stdout = ""
        self._stderr = ""
        self.command: str | None = None

    @property
    def stdin(self) -> BinaryIO:
        process = self._require_process()
        if process.stdin is None:
            raise TransportError("Remote command has no input stream")
        return process.stdin  # type: ignore[return-value]

    @property
    def stdout(self) -> str:
        return self._stdout

    @property
    def stderr(self) -> str:
        return self._stderr

    def start(self, command: str) -> None:
        """Spawn ssh running ``command`` on the board.

        Raises:
            TransportError: A command was already started, or ssh could
                not be executed.
        """
        if self._process is not None:
            raise TransportError(
                f"Session already running '{self.command}'; open a new session"
            )
        argv = [*self._argv, command]
        logger.debug("Starting session: %s", shlex.join(argv))
        try:
            self._process = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=self._stdout_file,
                stderr=self._stderr_file,
            )
        except OSError as e:
            raise TransportError(f"Failed to execute {self._argv[0]}: {e}") from e
        self.command = command

    def close_stdin(self) -> None:
        """Signal EOF to the remote command."""
        process = self._require_process()
        if process.stdin is None or process.stdin.closed:
            return
        try:
            process.stdin.close()
        except OSError as e:
            raise TransportError(
                f"Lost connection while sending input to '{self.command}': {e}"
            ) from e

    def wait(self, timeout: float | None = None) -> int:
        """Wait for the remote command to exit.

        Returns:
            Exit status of the remote command.

        Raises:
            TransportError: Timed out, or ssh itself failed (status 255).
        """
        process = self._require_process()
        try:
            exit_status = process.wait(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.wait()
            self._collect_output()
            raise TransportError(
                f"Remote command '{self.command}' timed out after {timeout} seconds"
            ) from e

        self._collect_output()
        if exit_status == SSH_ERROR_STATUS:
            detail = self._stderr.strip() or f"exit status {SSH_ERROR_STATUS}"
            raise TransportError(f"ssh failed running '{self.command}': {detail}")
        return exit_status

    def close(self) -> None:
        """Release the process and spool files. Safe to call twice."""
        process = self._process
        if process is not None:
            if process.poll() is None:
                logger.debug("Killing unfinished session '%s'", self.command)
                process.kill()
                process.wait()
            if process.stdin is not None and not process.stdin.closed:
                # The process is gone; a flush failure here has nothing to report
                with contextlib.suppress(OSError):
                    process.stdin.close()
        self._stdout_file.close()
        self._stderr_file.close()

    def _require_process(self) -> subprocess.Popen[bytes]:
        if self._process is None:
            raise TransportError("Session has not started a command")
        return self._process

    def _collect_output(self) -> None:
        self._stdout = _read_spool(self._stdout_file)
        self._stderr = _read_spool(self._stderr_file)

    def __enter__(self) -> SSHSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _read_spool(spool: IO[bytes]) -> str:
    spool.seek(0)
    return spool.read().decode("utf-8", errors="replace")


class SSHTransport:
    """Opens ssh command sessions to a board.

    Every session is a separate, non-interactive ssh invocation; key
    material must already be accepted by the board.
    """

    def __init__(
        self,
        host: str,
        *,
        user: str = "root",
        port: int = 22,
        identity_file: str | Path | None = None,
        ssh_binary: str = "ssh",
        connect_timeout: int = 5,
        strict_host_key_checking: bool = False,
        extra_options: Sequence[str] = (),
    ) -> None:
        self.host = host
        self.user = user
        self.port = port
        self.identity_file = Path(identity_file) if identity_file else None
        self.ssh_binary = ssh_binary
        self.connect_timeout = connect_timeout
        self.strict_host_key_checking = strict_host_key_checking
        self.extra_options = tuple(extra_options)

    @classmethod
    def from_settings(cls, settings: Settings) -> SSHTransport:
        """Build a transport from application settings."""
        return cls(
            settings.host,
            user=settings.user,
            port=settings.port,
            identity_file=settings.identity_file,
            ssh_binary=settings.ssh_binary,
            connect_timeout=settings.connect_timeout,
            strict_host_key_checking=settings.strict_host_key_checking,
        )

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}"

    def base_command(self) -> list[str]:
        """Compose the ssh argv, minus the remote command."""
        cmd = [
            self.ssh_binary,
            "-p",
            str(self.port),
            "-o",
            "BatchMode=yes",
            "-o",
            "PasswordAuthentication=no",
            "-o",
            f"ConnectTimeout={self.connect_timeout}",
        ]
        if not self.strict_host_key_checking:
            cmd.extend(
                [
                    "-o",
                    "StrictHostKeyChecking=no",
                    "-o",
                    "UserKnownHostsFile=/dev/null",
                ]
            )
        if self.identity_file is not None:
            cmd.extend(["-i", str(self.identity_file)])
        for option in self.extra_options:
            cmd.extend(["-o", option])
        cmd.append(self.destination)
        return cmd

    def open_session(self) -> SSHSession:
        return SSHSession(self.base_command())

    def __repr__(self) -> str:
        return f"<SSHTransport(destination='{self.destination}', port={self.port})>"


def log_remote_output(
    stdout: str, stderr: str, level: int = logging.DEBUG, stdout_level: int | None = None
) -> None:
    """Log captured output of a remote command.

    Args:
        stdout: Captured standard output.
        stderr: Captured standard error.
        level: Level for stderr, and for stdout unless stdout_level is set.
        stdout_level: Optional separate level for stdout.
    """
    if stdout.strip():
        remote_logger.log(
            level if stdout_level is None else stdout_level, "\n%s", stdout.rstrip()
        )
    if stderr.strip():
        remote_logger.log(level, "\n%s", stderr.rstrip())


def run_remote_command(
    transport: RemoteTransport,
    command: str,
    timeout: float | None = None,
) -> CommandResult:
    """Run one command without input on a fresh session.

    Args:
        transport: Link to the board.
        command: Command line to run.
        timeout: Seconds to wait for the command to exit.

    Returns:
        CommandResult with exit status and captured output.

    Raises:
        TransportError: The session could not run the command.
    """
    session = transport.open_session()
    try:
        session.start(command)
        session.close_stdin()
        exit_status = session.wait(timeout)
        return CommandResult(
            command=command,
            exit_status=exit_status,
            stdout=session.stdout,
            stderr=session.stderr,
        )
    finally:
        session.close()


__all__ = [
    "SSH_ERROR_STATUS",
    "RemoteSession",
    "RemoteTransport",
    "SSHSession",
    "SSHTransport",
    "log_remote_output",
    "run_remote_command",
]
