"""A table of open phase-space sources addressed by small integer ids."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from phasespace.header import AccessMode, PhaseSpaceError
from phasespace.source import PhaseSpaceSource, open_source

DEFAULT_MAX_SOURCES = 30


class SourceRegistry:
    """Keeps several phase-space sources open at once, each under its own id.

    Ids freed by :meth:`destroy_source` are handed out again before new ones.
    The registry holds fewer than ``max_sources`` sources at any time.
    """

    def __init__(self, max_sources: int = DEFAULT_MAX_SOURCES) -> None:
        if max_sources < 1:
            raise ValueError("max_sources must be positive")
        self.max_sources = max_sources
        self._slots: list[PhaseSpaceSource | None] = []

    def __enter__(self) -> SourceRegistry:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close_all()

    def __len__(self) -> int:
        return sum(1 for source in self._slots if source is not None)

    def __contains__(self, source_id: object) -> bool:
        return (
            isinstance(source_id, int)
            and 0 <= source_id < len(self._slots)
            and self._slots[source_id] is not None
        )

    def __iter__(self) -> Iterator[int]:
        """Ids of the open sources, in increasing order."""
        return (i for i, source in enumerate(self._slots) if source is not None)

    def _free_slot(self) -> int:
        for i, source in enumerate(self._slots):
            if source is None:
                return i
        if len(self._slots) + 1 >= self.max_sources:
            raise PhaseSpaceError("too many phase-space sources open")
        self._slots.append(None)
        return len(self._slots) - 1

    def new_source(self, path: str | Path, access: AccessMode | int) -> int:
        """Open a phase space and return the id it is registered under."""
        try:
            mode = AccessMode(access)
        except ValueError as exc:
            raise ValueError(f"wrong access mode {access!r}") from exc
        source_id = self._free_slot()
        self._slots[source_id] = open_source(path, mode)
        return source_id

    def get(self, source_id: int) -> PhaseSpaceSource:
        """The source registered under ``source_id``."""
        if source_id not in self:
            raise PhaseSpaceError(f"phase-space source {source_id} does not exist")
        source = self._slots[source_id]
        assert source is not None
        return source

    def destroy_source(self, source_id: int) -> None:
        """Close a source, saving its header if writable, and free its id."""
        if source_id > self.max_sources:
            raise ValueError(f"source id {source_id} is too large")
        if source_id < 0:
            raise ValueError(f"source id {source_id} is negative")
        source = self.get(source_id)
        try:
            source.close()
        finally:
            self._slots[source_id] = None

    def update_header(self, source_id: int) -> None:
        """Save the header of a source; read-only sources are left untouched."""
        self.get(source_id).update_header()

    def print_header(self, source_id: int) -> None:
        """Print the current header of a source."""
        self.get(source_id).print_header()

    def copy_header(self, source_id: int, destiny_id: int) -> None:
        """Copy the descriptive header of one source into another."""
        origin = self.get(source_id)
        destiny = self.get(destiny_id)
        destiny.header.copy_from(origin.header)

    def close_all(self) -> None:
        """Destroy every registered source."""
        for source_id in list(self):
            self.destroy_source(source_id)