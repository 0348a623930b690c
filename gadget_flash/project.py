"""Project file (gadget.yml) loading.

A Gadget project directory holds a ``gadget.yml`` describing, among
other things, the rootfs it builds on: ``rootfs.from`` names the board
and ``rootfs.hash`` the image. Only those entries matter for flashing;
the rest of the file belongs to other tools and is ignored.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gadget_flash.flash.errors import ConfigurationError
from gadget_flash.types import DeviceTarget

PROJECT_FILENAME = "gadget.yml"


class RootfsSchema(BaseModel):
    """Schema for the rootfs section of gadget.yml."""

    # Image hashes may be all digits, which YAML reads as numbers
    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, coerce_numbers_to_str=True
    )

    from_: str = Field(default="", alias="from", description="Board identifier")
    hash: str = Field(default="", description="Image identifier")


class ProjectSchema(BaseModel):
    """Schema for the parts of gadget.yml used when flashing."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, description="Project name")
    rootfs: RootfsSchema = Field(default_factory=RootfsSchema)


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_project(working_directory: Path) -> ProjectSchema:
    """Load and validate the project file of a working directory.

    Raises:
        ConfigurationError: File missing, unreadable or malformed.
    """
    path = working_directory / PROJECT_FILENAME
    try:
        data = load_yaml(path)
        return ProjectSchema.model_validate(data)
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"No {PROJECT_FILENAME} found in {working_directory}"
        ) from e
    except (OSError, yaml.YAMLError, ValueError, ValidationError) as e:
        raise ConfigurationError(f"Invalid {path}: {e}") from e


def load_target(
    working_directory: str | Path, board: str | None = None
) -> DeviceTarget:
    """Build the DeviceTarget for a project directory.

    Args:
        working_directory: Project directory.
        board: Board override; takes precedence over rootfs.from.

    Returns:
        DeviceTarget for flashing.

    Raises:
        ConfigurationError: Project file missing or malformed.
    """
    working_directory = Path(working_directory)
    project = load_project(working_directory)
    return DeviceTarget(
        board=board if board is not None else project.rootfs.from_,
        image_hash=project.rootfs.hash,
        working_directory=working_directory,
    )


__all__ = [
    "PROJECT_FILENAME",
    "ProjectSchema",
    "RootfsSchema",
    "load_project",
    "load_target",
    "load_yaml",
]
