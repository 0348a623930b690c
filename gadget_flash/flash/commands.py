"""Command vocabulary understood by the on-board update agent.

Each command runs in its own ssh session. Exit status 0 means success;
output is diagnostic only and never parsed.
"""

from gadget_flash.types import FlashState

UPDATE_VOLUME = "update_volume"
TOGGLE_ACTIVE_SLOT = "toggle_active_slot"
SYNC = "sync"
REBOOT = "reboot"

# Issued in order after every artifact transferred; each step gates the next
POST_TRANSFER_SEQUENCE: tuple[tuple[str, FlashState], ...] = (
    (TOGGLE_ACTIVE_SLOT, FlashState.SLOT_TOGGLED),
    (SYNC, FlashState.SYNCED),
    (REBOOT, FlashState.REBOOT_ISSUED),
)


def update_volume_command(artifact_type: str, size: int, digest: bytes) -> str:
    """Compose the header line for one artifact upload.

    The agent reads exactly ``size`` bytes from its input after starting,
    checks them against ``digest`` and writes them to the named volume.

    Args:
        artifact_type: Target volume (kernel, fdt, rootfs...).
        size: Payload size in bytes.
        digest: Raw SHA-256 digest of the payload.

    Returns:
        Command line, e.g. ``update_volume kernel 4194304 9f86d0...``.
    """
    return f"{UPDATE_VOLUME} {artifact_type} {size:d} {digest.hex()}"


__all__ = [
    "POST_TRANSFER_SEQUENCE",
    "REBOOT",
    "SYNC",
    "TOGGLE_ACTIVE_SLOT",
    "UPDATE_VOLUME",
    "update_volume_command",
]
