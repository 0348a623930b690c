"""Flash service layer: deploy a full image to a board.

This module provides high-level flash operations:
- resolve_board / verify_artifacts: pre-flight checks with no remote I/O
- plan_flash: dry-run listing the exact update_volume commands
- FlashOrchestrator: drives the linear flash state machine
- flash_device: service entry point returning a FlashResult

A flash run moves strictly forward:
authenticated -> board_resolved -> artifacts_verified -> transferring
(once per artifact) -> slot_toggled -> synced -> reboot_issued -> done.
The first failure aborts the run. Nothing is rolled back: if the slot was
toggled but sync or reboot failed, the board is left pointing at the new,
fully written image and the operator is told which step failed.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from gadget_flash.flash.catalog import DEFAULT_CATALOG, ArtifactCatalog
from gadget_flash.flash.commands import (
    POST_TRANSFER_SEQUENCE,
    REBOOT,
    SYNC,
    TOGGLE_ACTIVE_SLOT,
    update_volume_command,
)
from gadget_flash.flash.errors import (
    ConfigurationError,
    FlashError,
    MissingArtifactError,
    RemoteCommandError,
)
from gadget_flash.flash.integrity import DEFAULT_BLOCK_SIZE, compute_file_digest
from gadget_flash.flash.progress import ProgressSink
from gadget_flash.flash.session import transfer_artifact
from gadget_flash.flash.transport import (
    RemoteTransport,
    log_remote_output,
    run_remote_command,
)
from gadget_flash.types import (
    ArtifactDef,
    DeviceTarget,
    FlashState,
    TransferOutcome,
)

logger = logging.getLogger(__name__)


@dataclass
class PlannedArtifact:
    """One artifact as it would be sent.

    Attributes:
        file_name: File name in the images directory.
        artifact_type: Volume the agent writes.
        path: Local path of the file.
        size_bytes: Payload size.
        sha256: Hex digest of the payload.
        command: update_volume line that would be issued.
    """

    file_name: str
    artifact_type: str
    path: str
    size_bytes: int
    sha256: str
    command: str


@dataclass
class FlashPlan:
    """Plan for a flash operation (used for dry-run)."""

    board: str
    image_hash: str
    working_directory: str
    artifacts: list[PlannedArtifact] = field(default_factory=list)
    post_transfer_commands: list[str] = field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(a.size_bytes for a in self.artifacts)


@dataclass
class FlashResult:
    """Result of a flash operation.

    Attributes:
        success: Whether the board was flashed and rebooted.
        board: Board identifier of the target.
        state: Final state (done, or aborted).
        outcomes: Transfers that completed, in order.
        commands: Post-transfer commands that succeeded.
        failed_step: Step that failed, if any.
        error_message: Error message if flash failed.
        error_code: Error code if flash failed.
        remote_stdout: Output of the failing remote command, if any.
        remote_stderr: Error output of the failing remote command, if any.
    """

    success: bool
    board: str
    state: FlashState
    outcomes: list[TransferOutcome] = field(default_factory=list)
    commands: list[str] = field(default_factory=list)
    failed_step: str | None = None
    error_message: str | None = None
    error_code: str | None = None
    remote_stdout: str | None = None
    remote_stderr: str | None = None

    @property
    def bytes_sent(self) -> int:
        return sum(o.bytes_sent for o in self.outcomes)


def resolve_board(target: DeviceTarget, catalog: ArtifactCatalog) -> ArtifactDef:
    """Find the artifact definition for a target. No I/O is performed.

    Raises:
        ConfigurationError: Neither board nor image is configured.
        UnknownBoardError: Board is not in the catalog.
    """
    if not target.board and not target.image_hash:
        logger.error("Failed to find rootfs: board and image are both unset")
        raise ConfigurationError(
            "Project rootfs is not configured (both 'from' and 'hash' are empty)"
        )
    artifact_def = catalog.resolve(target.board)
    logger.info("Flashing: %s", target.board)
    return artifact_def


def verify_artifacts(target: DeviceTarget, artifact_def: ArtifactDef) -> list[Path]:
    """Check that every artifact of a board is present before sending any.

    Args:
        target: Device target providing the working directory.
        artifact_def: Artifacts the board requires.

    Returns:
        Artifact paths in declared order.

    Raises:
        MissingArtifactError: First artifact that is absent or unreadable.
    """
    paths: list[Path] = []
    for spec in artifact_def.artifacts:
        path = target.artifact_path(spec)
        if not path.is_file() or not os.access(path, os.R_OK):
            logger.error("Could not locate '%s'", path)
            raise MissingArtifactError(str(path))
        paths.append(path)
    return paths


def plan_flash(
    target: DeviceTarget,
    *,
    catalog: ArtifactCatalog = DEFAULT_CATALOG,
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> FlashPlan:
    """Create a plan for a flash operation without contacting the board.

    Raises:
        ConfigurationError: Board missing or unknown.
        MissingArtifactError: An artifact file is absent.
        ArtifactIOError: An artifact could not be hashed.
    """
    artifact_def = resolve_board(target, catalog)
    paths = verify_artifacts(target, artifact_def)

    plan = FlashPlan(
        board=target.board,
        image_hash=target.image_hash,
        working_directory=str(target.working_directory),
        post_transfer_commands=[command for command, _ in POST_TRANSFER_SEQUENCE],
    )
    for spec, path in zip(artifact_def.artifacts, paths, strict=True):
        size, digest = compute_file_digest(path, block_size)
        plan.artifacts.append(
            PlannedArtifact(
                file_name=spec.file_name,
                artifact_type=spec.artifact_type,
                path=str(path),
                size_bytes=size,
                sha256=digest.hex(),
                command=update_volume_command(spec.artifact_type, size, digest),
            )
        )
    return plan


class FlashOrchestrator:
    """Drives one flash run over an authenticated transport.

    The transport is used strictly sequentially: one session per
    artifact, then one per post-transfer command.
    """

    def __init__(
        self,
        transport: RemoteTransport,
        *,
        catalog: ArtifactCatalog = DEFAULT_CATALOG,
        progress: ProgressSink | None = None,
        block_size: int = DEFAULT_BLOCK_SIZE,
        transfer_timeout: float | None = None,
        command_timeout: float | None = None,
    ) -> None:
        self.transport = transport
        self.catalog = catalog
        self.progress = progress
        self.block_size = block_size
        self.transfer_timeout = transfer_timeout
        self.command_timeout = command_timeout
        self.state = FlashState.AUTHENTICATED
        self.outcomes: list[TransferOutcome] = []
        self.commands: list[str] = []

    def run(self, target: DeviceTarget) -> FlashResult:
        """Flash every artifact of the target board, then activate and reboot.

        Returns:
            FlashResult in the done state.

        Raises:
            FlashError: Any failure; ``step`` names where the run stopped
                and ``state`` is left at aborted.
        """
        if self.state is not FlashState.AUTHENTICATED:
            raise RuntimeError("FlashOrchestrator instances run only once")

        step = FlashState.BOARD_RESOLVED.value
        try:
            artifact_def = resolve_board(target, self.catalog)
            self.state = FlashState.BOARD_RESOLVED

            step = FlashState.ARTIFACTS_VERIFIED.value
            paths = verify_artifacts(target, artifact_def)
            self.state = FlashState.ARTIFACTS_VERIFIED

            self.state = FlashState.TRANSFERRING
            for spec, path in zip(artifact_def.artifacts, paths, strict=True):
                step = f"transfer:{spec.artifact_type}"
                outcome = transfer_artifact(
                    self.transport,
                    path,
                    spec.artifact_type,
                    progress=self.progress,
                    block_size=self.block_size,
                    timeout=self.transfer_timeout,
                )
                self.outcomes.append(outcome)

            for command, reached in POST_TRANSFER_SEQUENCE:
                step = command
                self._run_post_transfer(command)
                self.state = reached
        except FlashError as e:
            e.step = step
            self.state = FlashState.ABORTED
            logger.error("Flash aborted at %s: %s", step, e.message)
            raise

        self.state = FlashState.DONE
        return FlashResult(
            success=True,
            board=target.board,
            state=self.state,
            outcomes=list(self.outcomes),
            commands=list(self.commands),
        )

    def _run_post_transfer(self, command: str) -> None:
        if command == SYNC:
            logger.info("Syncing changes..")
        elif command == REBOOT:
            logger.info("Rebooting..")

        result = run_remote_command(self.transport, command, self.command_timeout)
        if not result.success:
            log_remote_output(result.stdout, result.stderr, logging.ERROR)
            raise RemoteCommandError(
                command, result.exit_status, result.stdout, result.stderr
            )

        # toggle_active_slot reports which slot is now active
        stdout_level = logging.INFO if command == TOGGLE_ACTIVE_SLOT else None
        log_remote_output(result.stdout, result.stderr, stdout_level=stdout_level)
        self.commands.append(command)


def flash_device(
    target: DeviceTarget,
    transport: RemoteTransport,
    *,
    catalog: ArtifactCatalog = DEFAULT_CATALOG,
    progress: ProgressSink | None = None,
    block_size: int = DEFAULT_BLOCK_SIZE,
    transfer_timeout: float | None = None,
    command_timeout: float | None = None,
) -> FlashResult:
    """Flash a board and report the result instead of raising.

    This is the main entry point for flashing operations.

    Args:
        target: Board, image and project directory.
        transport: Authenticated link to the board.
        catalog: Artifact catalog to resolve the board in.
        progress: Sink receiving upload progress.
        block_size: Chunk size for hashing and copying.
        transfer_timeout: Seconds to wait for each update_volume to finish.
        command_timeout: Seconds to wait for each post-transfer command.

    Returns:
        FlashResult; on failure it names the failed step and carries
        the transfers that completed before it.
    """
    orchestrator = FlashOrchestrator(
        transport,
        catalog=catalog,
        progress=progress,
        block_size=block_size,
        transfer_timeout=transfer_timeout,
        command_timeout=command_timeout,
    )
    try:
        result = orchestrator.run(target)
    except FlashError as e:
        return FlashResult(
            success=False,
            board=target.board,
            state=orchestrator.state,
            outcomes=list(orchestrator.outcomes),
            commands=list(orchestrator.commands),
            failed_step=e.step,
            error_message=e.message,
            error_code=e.error_code,
            remote_stdout=getattr(e, "stdout", None),
            remote_stderr=getattr(e, "stderr", None),
        )

    logger.info(
        "Flash succeeded: %d artifact(s), %d bytes sent to %s",
        len(result.outcomes),
        result.bytes_sent,
        target.board,
    )
    return result


__all__ = [
    "FlashOrchestrator",
    "FlashPlan",
    "FlashResult",
    "PlannedArtifact",
    "flash_device",
    "plan_flash",
    "resolve_board",
    "verify_artifacts",
]
