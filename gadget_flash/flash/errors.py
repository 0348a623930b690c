"""Error taxonomy for flash operations.

Every error is fatal to the current flash run. None of them are retried
automatically; the operator fixes the cause and re-runs the whole flash.
"""


class FlashError(Exception):
    """Base exception for flash errors.

    Attributes:
        message: Human-readable error message.
        error_code: Stable code for programmatic handling.
        step: Flash step that failed, set by the orchestrator.
    """

    def __init__(self, message: str, error_code: str) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.step: str | None = None


class ConfigurationError(FlashError):
    """Project configuration does not describe a flashable board."""

    def __init__(self, message: str, error_code: str = "CONFIGURATION_ERROR") -> None:
        super().__init__(message, error_code=error_code)


class UnknownBoardError(ConfigurationError):
    """Board has no entry in the artifact catalog."""

    def __init__(self, board: str) -> None:
        super().__init__(
            f"{board!r} is not a supported board", error_code="UNKNOWN_BOARD"
        )
        self.board = board


class MissingArtifactError(FlashError):
    """A required artifact file is not present on local disk."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Could not locate artifact '{path}'", error_code="MISSING_ARTIFACT"
        )
        self.path = path


class ArtifactIOError(FlashError):
    """Local artifact could not be opened, read or stat'ed."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(message, error_code="ARTIFACT_IO_ERROR")
        self.path = path


class TransportError(FlashError):
    """The ssh link failed: could not start, write, or finish a command."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="TRANSPORT_ERROR")


class RemoteCommandError(FlashError):
    """Remote command exited with a non-zero status."""

    def __init__(
        self, command: str, exit_status: int, stdout: str = "", stderr: str = ""
    ) -> None:
        super().__init__(
            f"Remote command '{command}' failed with exit status {exit_status}",
            error_code="REMOTE_COMMAND_FAILED",
        )
        self.command = command
        self.exit_status = exit_status
        self.stdout = stdout
        self.stderr = stderr


__all__ = [
    "ArtifactIOError",
    "ConfigurationError",
    "FlashError",
    "MissingArtifactError",
    "RemoteCommandError",
    "TransportError",
    "UnknownBoardError",
]
