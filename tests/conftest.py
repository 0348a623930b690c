"""Shared fixtures: a fake board update agent and project directories."""

import hashlib
import io
from pathlib import Path

import pytest

from gadget_flash.flash.errors import TransportError

# Default artifact contents for a chippro project
CHIPPRO_IMAGES = {
    "zImage": b"kernel-image-" * 512,
    "ntc-gr8-crumb.dtb": b"\xd0\x0d\xfe\xed" + b"fdt" * 100,
    "rootfs.ubifs": bytes(range(256)) * 1200,
}


class RecordingInput(io.BytesIO):
    """Command input that remembers what was written once closed."""

    def __init__(self) -> None:
        super().__init__()
        self.payload = b""

    def close(self) -> None:
        if not self.closed:
            self.payload = self.getvalue()
        super().close()


class FakeSession:
    """One-shot session handled by a FakeAgent."""

    def __init__(self, agent: "FakeAgent") -> None:
        self.agent = agent
        self.command: str | None = None
        self.input = RecordingInput()
        self.closed = False
        self._stdout = ""
        self._stderr = ""

    @property
    def stdin(self) -> io.BytesIO:
        if self.command is None:
            raise TransportError("Session has not started a command")
        return self.input

    @property
    def stdout(self) -> str:
        return self._stdout

    @property
    def stderr(self) -> str:
        return self._stderr

    def start(self, command: str) -> None:
        if self.command is not None:
            raise TransportError("Session already running a command")
        self.command = command
        self.agent.commands.append(command)

    def close_stdin(self) -> None:
        self.input.close()

    def wait(self, timeout: float | None = None) -> int:
        assert self.command is not None
        status, self._stdout, self._stderr = self.agent.handle(
            self.command, self.input.payload
        )
        return status

    def close(self) -> None:
        self.closed = True


class FakeAgent:
    """Stand-in for the board: records commands and checks payloads.

    Args:
        fail_on: Maps a command prefix (e.g. 'update_volume fdt', 'sync')
            to the error text reported when a command starts with it.
        validate_payloads: Reject update_volume payloads whose size or
            digest do not match the command header.
    """

    def __init__(
        self,
        fail_on: dict[str, str] | None = None,
        validate_payloads: bool = True,
    ) -> None:
        self.fail_on = fail_on or {}
        self.validate_payloads = validate_payloads
        self.commands: list[str] = []
        self.sessions: list[FakeSession] = []
        self.volumes: dict[str, bytes] = {}

    def open_session(self) -> FakeSession:
        session = FakeSession(self)
        self.sessions.append(session)
        return session

    @property
    def update_types(self) -> list[str]:
        return [c.split()[1] for c in self.commands if c.startswith("update_volume")]

    def handle(self, command: str, payload: bytes) -> tuple[int, str, str]:
        for prefix, message in self.fail_on.items():
            if command.startswith(prefix):
                return 1, f"running {command.split()[0]}\n", f"{message}\n"

        name, *args = command.split()
        if name != "update_volume":
            return 0, f"{name}: ok\n", ""

        artifact_type, size, digest = args
        if self.validate_payloads and (
            len(payload) != int(size)
            or hashlib.sha256(payload).hexdigest() != digest
        ):
            return 1, "", "checksum mismatch\n"
        self.volumes[artifact_type] = payload
        return 0, f"wrote {size} bytes to {artifact_type}\n", ""


def write_project(
    directory: Path,
    board: str = "chippro",
    image_hash: str = "abc123",
    images: dict[str, bytes] | None = None,
) -> Path:
    """Create a project directory with gadget.yml and an images dir."""
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "gadget.yml").write_text(
        "spec: '0.0'\n"
        "name: demo\n"
        f"rootfs:\n  from: {board}\n  hash: {image_hash}\n",
        encoding="utf-8",
    )
    images_dir = directory / ".images"
    images_dir.mkdir(exist_ok=True)
    for name, content in (CHIPPRO_IMAGES if images is None else images).items():
        (images_dir / name).write_bytes(content)
    return directory


@pytest.fixture
def agent() -> FakeAgent:
    """A fake board that accepts every command."""
    return FakeAgent()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A chippro project with every artifact present."""
    return write_project(tmp_path / "project")
