"""Board flashing module.

This module handles:
- Resolving the artifacts a board needs (catalog)
- Verifying every artifact is present before anything is sent
- Streaming artifacts to the board's update agent over ssh
- Activating the new slot, syncing and rebooting

Each remote command runs in its own ssh session. The first failure
aborts the run; there are no retries and no rollback.
"""

from gadget_flash.flash.catalog import DEFAULT_CATALOG, ArtifactCatalog
from gadget_flash.flash.errors import (
    ArtifactIOError,
    ConfigurationError,
    FlashError,
    MissingArtifactError,
    RemoteCommandError,
    TransportError,
    UnknownBoardError,
)
from gadget_flash.flash.integrity import compute_file_digest
from gadget_flash.flash.progress import (
    LogProgressSink,
    ProgressReader,
    ProgressReport,
    RichProgressSink,
)
from gadget_flash.flash.service import (
    FlashOrchestrator,
    FlashPlan,
    FlashResult,
    flash_device,
    plan_flash,
)
from gadget_flash.flash.session import transfer_artifact
from gadget_flash.flash.transport import SSHTransport, run_remote_command

__all__ = [
    # Catalog
    "DEFAULT_CATALOG",
    "ArtifactCatalog",
    # Errors
    "ArtifactIOError",
    "ConfigurationError",
    "FlashError",
    "MissingArtifactError",
    "RemoteCommandError",
    "TransportError",
    "UnknownBoardError",
    # Integrity / progress
    "LogProgressSink",
    "ProgressReader",
    "ProgressReport",
    "RichProgressSink",
    "compute_file_digest",
    # Transport / session
    "SSHTransport",
    "run_remote_command",
    "transfer_artifact",
    # Service
    "FlashOrchestrator",
    "FlashPlan",
    "FlashResult",
    "flash_device",
    "plan_flash",
]
