"""Shared type definitions for gadget_flash.

This module contains dataclasses and enums shared across subpackages
to avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

# Directory (relative to the project working directory) holding build outputs
IMAGES_DIRNAME = ".images"


class FlashState(str, Enum):
    """Position of a flash run in its linear state machine."""

    AUTHENTICATED = "authenticated"
    BOARD_RESOLVED = "board_resolved"
    ARTIFACTS_VERIFIED = "artifacts_verified"
    TRANSFERRING = "transferring"
    SLOT_TOGGLED = "slot_toggled"
    SYNCED = "synced"
    REBOOT_ISSUED = "reboot_issued"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ArtifactSpec:
    """One file that must be written to the board.

    Attributes:
        file_name: Name of the file inside the images directory.
        artifact_type: Volume name understood by the remote agent
            (e.g. 'kernel', 'fdt', 'rootfs').
    """

    file_name: str
    artifact_type: str

    def __post_init__(self) -> None:
        if not self.file_name or "/" in self.file_name or "\\" in self.file_name:
            raise ValueError(f"file_name must be a bare file name: {self.file_name!r}")
        if not self.artifact_type or any(c.isspace() for c in self.artifact_type):
            raise ValueError(
                f"artifact_type must be a single word: {self.artifact_type!r}"
            )


@dataclass(frozen=True)
class ArtifactDef:
    """Ordered list of artifacts a board requires."""

    board: str
    artifacts: tuple[ArtifactSpec, ...]

    def __post_init__(self) -> None:
        if not self.board:
            raise ValueError("board identifier must not be empty")
        if not self.artifacts:
            raise ValueError(f"board {self.board!r} declares no artifacts")


@dataclass(frozen=True)
class DeviceTarget:
    """The board a project deploys to.

    Attributes:
        board: Board identifier (the rootfs 'from' entry of the project).
        image_hash: Image identifier; informational for flashing.
        working_directory: Project directory containing the images dir.
    """

    board: str
    image_hash: str
    working_directory: Path

    @property
    def images_dir(self) -> Path:
        return self.working_directory / IMAGES_DIRNAME

    def artifact_path(self, spec: ArtifactSpec) -> Path:
        """Return the local path of an artifact for this target."""
        return self.images_dir / spec.file_name


@dataclass
class TransferOutcome:
    """Result of streaming one artifact to the board.

    Attributes:
        artifact_type: Volume that was written.
        bytes_sent: Number of payload bytes written to the remote input.
        checksum: SHA-256 digest announced in the update_volume command.
        remote_exit_status: Exit status of the remote command.
    """

    artifact_type: str
    bytes_sent: int
    checksum: bytes
    remote_exit_status: int

    @property
    def checksum_hex(self) -> str:
        return self.checksum.hex()


@dataclass
class CommandResult:
    """Captured result of one remote command."""

    command: str
    exit_status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_status == 0


__all__ = [
    "IMAGES_DIRNAME",
    "ArtifactDef",
    "ArtifactSpec",
    "CommandResult",
    "DeviceTarget",
    "FlashState",
    "TransferOutcome",
]
