"""Positioning within the particle records of a phase-space file."""

from __future__ import annotations

import io
from typing import BinaryIO

from phasespace.header import (
    EVENT_GENERATOR,
    NATIVE_BYTE_ORDER,
    PhaseSpaceError,
    PhaseSpaceHeader,
)


class RecordCursor:
    """Moves through the fixed-length particle records of an open phase-space stream.

    The header supplies the record length, the particle count and, for
    consistency checks, the expected file size and byte order.
    """

    def __init__(self, stream: BinaryIO, header: PhaseSpaceHeader) -> None:
        self.stream = stream
        self.header = header

    @property
    def position(self) -> int:
        """Current byte offset in the stream."""
        return self.stream.tell()

    def _seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        try:
            return self.stream.seek(offset, whence)
        except (OSError, ValueError) as exc:
            raise PhaseSpaceError(f"cannot move to offset {offset}: {exc}") from exc

    def seek_record(self, record_num: int) -> None:
        """Place the stream before record ``record_num``, counted from 1.

        ``record_num`` may be one past the last particle, which places the
        stream at the end of the records.
        """
        if record_num <= 0:
            raise ValueError(f"record number must be positive, got {record_num}")
        if record_num > self.header.n_particles + 1:
            raise ValueError(
                f"record number {record_num} exceeds "
                f"{self.header.n_particles} particles in the file"
            )
        self._seek((record_num - 1) * self.header.record_length)

    def seek_chunk(self, i_chunk: int, n_chunk: int) -> None:
        """Place the stream at the start of chunk ``i_chunk`` of ``n_chunk`` equal parts.

        Event generators have no records to divide, so the position is left alone.
        """
        if n_chunk <= 0:
            raise ValueError(f"number of chunks must be positive, got {n_chunk}")
        if not 1 <= i_chunk <= n_chunk:
            raise ValueError(f"chunk {i_chunk} is outside 1..{n_chunk}")
        if self.header.file_type == EVENT_GENERATOR:
            return
        records_per_chunk = int(self.header.n_particles) // n_chunk
        offset = (i_chunk - 1) * self.header.record_length * records_per_chunk
        self._seek(offset)

    def check_file_size_byte_order(self) -> tuple[bool, bool]:
        """Compare the file with its header.

        Returns whether the file size equals the header checksum and whether
        the header byte order equals this machine's. The stream position is
        left unchanged.
        """
        current = self.stream.tell()
        size = self._seek(0, io.SEEK_END)
        self._seek(current)
        size_matches = size == self.header.checksum
        order_matches = self.header.byte_order == NATIVE_BYTE_ORDER
        return size_matches, order_matches

    def at_end(self) -> bool:
        """True when no bytes remain after the current position."""
        current = self.stream.tell()
        size = self._seek(0, io.SEEK_END)
        self._seek(current)
        return current >= size

    def rewind(self) -> None:
        """Return to the first record."""
        self._seek(0)