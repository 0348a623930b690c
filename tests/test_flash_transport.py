"""Tests for flash/transport.py - ssh command sessions.

Process-level tests replace ssh with a small shell script that runs the
remote command locally, so no network or board is needed.
"""

import hashlib
import stat
import sys
from pathlib import Path

import pytest

from gadget_flash.config import Settings
from gadget_flash.flash.errors import TransportError
from gadget_flash.flash.session import transfer_artifact
from gadget_flash.flash.transport import SSHTransport, run_remote_command

posix_only = pytest.mark.skipif(
    sys.platform == "win32", reason="stand-in ssh is a POSIX shell script"
)

# Runs the last argument (the remote command) with sh, ignoring ssh options.
# update_volume stores its input and header under $GADGET_TEST_VOLUMES.
FAKE_SSH = """#!/bin/sh
for last; do :; done
update_volume() {
    cat > "$GADGET_TEST_VOLUMES/$1"
    echo "$2 $3" > "$GADGET_TEST_VOLUMES/$1.header"
    echo "volume $1 updated"
}
eval "$last"
"""


@pytest.fixture
def fake_ssh(tmp_path: Path) -> Path:
    """Write the stand-in ssh executable."""
    script = tmp_path / "fake-ssh"
    script.write_text(FAKE_SSH, encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


class TestSSHTransportCommand:
    """Tests for ssh argv composition."""

    def test_default_command(self):
        """Non-interactive options, then destination."""
        transport = SSHTransport("192.168.81.1")

        assert transport.base_command() == [
            "ssh",
            "-p",
            "22",
            "-o",
            "BatchMode=yes",
            "-o",
            "PasswordAuthentication=no",
            "-o",
            "ConnectTimeout=5",
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "UserKnownHostsFile=/dev/null",
            "root@192.168.81.1",
        ]

    def test_identity_and_options(self):
        """Identity file, strict host keys and extra options."""
        transport = SSHTransport(
            "board.local",
            user="admin",
            port=2222,
            identity_file="/keys/gadget",
            strict_host_key_checking=True,
            extra_options=["ServerAliveInterval=10"],
        )

        cmd = transport.base_command()
        assert cmd[:3] == ["ssh", "-p", "2222"]
        assert "StrictHostKeyChecking=no" not in cmd
        assert cmd[cmd.index("-i") + 1] == "/keys/gadget"
        assert "ServerAliveInterval=10" in cmd
        assert cmd[-1] == "admin@board.local"

    def test_from_settings(self):
        """Transport picks up connection settings."""
        settings = Settings(
            host="10.0.0.2",
            user="gadget",
            port=2200,
            identity_file=None,
            ssh_binary="/usr/bin/ssh",
            connect_timeout=9,
        )

        transport = SSHTransport.from_settings(settings)

        assert transport.destination == "gadget@10.0.0.2"
        cmd = transport.base_command()
        assert cmd[0] == "/usr/bin/ssh"
        assert "-i" not in cmd
        assert "ConnectTimeout=9" in cmd


@posix_only
class TestSSHSession:
    """Tests for SSHSession with a stand-in ssh."""

    def test_run_remote_command_captures_output(self, fake_ssh):
        """Exit status, stdout and stderr are captured."""
        transport = SSHTransport("board", ssh_binary=str(fake_ssh))

        result = run_remote_command(
            transport, "echo slot b active; echo warn >&2; exit 3", timeout=10
        )

        assert result.exit_status == 3
        assert not result.success
        assert result.stdout == "slot b active\n"
        assert result.stderr == "warn\n"

    def test_input_reaches_command(self, fake_ssh):
        """Bytes written to stdin reach the remote command."""
        session = SSHTransport("board", ssh_binary=str(fake_ssh)).open_session()
        try:
            session.start("wc -c")
            session.stdin.write(b"12345")
            session.close_stdin()
            assert session.wait(timeout=10) == 0
            assert session.stdout.strip() == "5"
        finally:
            session.close()

    def test_ssh_failure_is_transport_error(self, fake_ssh):
        """Status 255 means ssh itself failed."""
        transport = SSHTransport("board", ssh_binary=str(fake_ssh))

        with pytest.raises(TransportError, match="connection refused"):
            run_remote_command(
                transport, "echo connection refused >&2; exit 255", timeout=10
            )

    def test_timeout(self, fake_ssh):
        """A command running past its timeout is killed."""
        transport = SSHTransport("board", ssh_binary=str(fake_ssh))

        with pytest.raises(TransportError, match="timed out"):
            run_remote_command(transport, "sleep 5", timeout=0.2)

    def test_single_command_per_session(self, fake_ssh):
        """A session runs exactly one command."""
        session = SSHTransport("board", ssh_binary=str(fake_ssh)).open_session()
        try:
            session.start("true")
            with pytest.raises(TransportError, match="open a new session"):
                session.start("true")
        finally:
            session.close()

    def test_missing_ssh_binary(self, tmp_path):
        """An ssh client that cannot be executed is a transport error."""
        transport = SSHTransport("board", ssh_binary=str(tmp_path / "no-ssh"))

        with pytest.raises(TransportError, match="Failed to execute"):
            run_remote_command(transport, "true")

    def test_stdin_before_start(self, fake_ssh):
        """Input is only available once a command runs."""
        session = SSHTransport("board", ssh_binary=str(fake_ssh)).open_session()
        try:
            with pytest.raises(TransportError):
                _ = session.stdin
        finally:
            session.close()

    def test_transfer_artifact_over_process(self, fake_ssh, tmp_path, monkeypatch):
        """A full transfer through a real child process pipe."""
        volumes = tmp_path / "volumes"
        volumes.mkdir()
        monkeypatch.setenv("GADGET_TEST_VOLUMES", str(volumes))
        content = bytes(range(256)) * 2000
        artifact = tmp_path / "rootfs.ubifs"
        artifact.write_bytes(content)
        transport = SSHTransport("board", ssh_binary=str(fake_ssh))

        outcome = transfer_artifact(
            transport, artifact, "rootfs", block_size=4096, timeout=30
        )

        assert (volumes / "rootfs").read_bytes() == content
        header = (volumes / "rootfs.header").read_text().split()
        assert header == [str(len(content)), hashlib.sha256(content).hexdigest()]
        assert outcome.bytes_sent == len(content)
        assert outcome.remote_exit_status == 0
