"""Artifact catalog: which files each supported board needs.

The catalog is an immutable lookup handed to the orchestrator at
construction time, so tests can flash imaginary boards.
"""

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from gadget_flash.flash.errors import UnknownBoardError
from gadget_flash.types import ArtifactDef, ArtifactSpec


class ArtifactCatalog:
    """Read-only mapping of board identifier to its ArtifactDef.

    Board identifiers are matched exactly: no case folding, no prefix
    matching and no default board.
    """

    def __init__(self, definitions: Iterable[ArtifactDef]) -> None:
        entries: dict[str, ArtifactDef] = {}
        for definition in definitions:
            if definition.board in entries:
                raise ValueError(f"Duplicate board in catalog: {definition.board!r}")
            entries[definition.board] = definition
        self._entries: Mapping[str, ArtifactDef] = MappingProxyType(entries)

    @property
    def boards(self) -> tuple[str, ...]:
        """Supported board identifiers in declaration order."""
        return tuple(self._entries)

    def resolve(self, board: str) -> ArtifactDef:
        """Look up the artifacts for a board.

        Args:
            board: Board identifier.

        Returns:
            The board's ArtifactDef.

        Raises:
            UnknownBoardError: Board is not in the catalog.
        """
        try:
            return self._entries[board]
        except KeyError:
            raise UnknownBoardError(board) from None

    def __contains__(self, board: object) -> bool:
        return board in self._entries

    def __iter__(self) -> Iterator[ArtifactDef]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<ArtifactCatalog(boards={list(self._entries)})>"


DEFAULT_CATALOG = ArtifactCatalog(
    [
        ArtifactDef(
            board="chippro",
            artifacts=(
                ArtifactSpec("zImage", "kernel"),
                ArtifactSpec("ntc-gr8-crumb.dtb", "fdt"),
                ArtifactSpec("rootfs.ubifs", "rootfs"),
            ),
        ),
    ]
)


__all__ = ["DEFAULT_CATALOG", "ArtifactCatalog"]
