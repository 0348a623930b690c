"""Streaming content hashing for artifacts.

The update_volume header carries the payload size and digest, so each
artifact is hashed in a first pass and streamed again in a second one.
The extra disk read is the price of never holding a rootfs image in memory.
"""

import hashlib
import logging
from pathlib import Path

from gadget_flash.flash.errors import ArtifactIOError

logger = logging.getLogger(__name__)

# Default block size for I/O operations (1 MiB)
DEFAULT_BLOCK_SIZE = 1024 * 1024


def compute_file_digest(
    file_path: str | Path,
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> tuple[int, bytes]:
    """Compute the size and SHA-256 digest of a file in one pass.

    Args:
        file_path: Path to the file to hash.
        block_size: Block size for reading.

    Returns:
        Tuple of (bytes hashed, raw digest).

    Raises:
        ArtifactIOError: File could not be opened or read.
    """
    hasher = hashlib.sha256()
    size = 0

    try:
        with open(file_path, "rb") as f:
            while True:
                chunk = f.read(block_size)
                if not chunk:
                    break
                hasher.update(chunk)
                size += len(chunk)
    except OSError as e:
        logger.error("Failed to get checksum of %s: %s", file_path, e)
        raise ArtifactIOError(
            str(file_path), f"Failed to read {file_path}: {e}"
        ) from e

    digest = hasher.digest()
    logger.debug("checksum of %s: %s (%d bytes)", file_path, digest.hex(), size)
    return size, digest


__all__ = ["DEFAULT_BLOCK_SIZE", "compute_file_digest"]
