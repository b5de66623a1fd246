"""An open IAEA phase-space source: a header file plus its particle records."""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import BinaryIO, Iterator

from phasespace.cursor import RecordCursor
from phasespace.header import (
    EVENT_GENERATOR,
    HISTORY_NUMBER_TYPE,
    MAX_NUM_PARTICLES,
    AccessMode,
    PhaseSpaceError,
    PhaseSpaceHeader,
    load_header,
)
from phasespace.record import Particle, RecordFormat

HEADER_EXTENSION = ".IAEAheader"
PHSP_EXTENSION = ".IAEAphsp"

MAX_EVENT_GENERATOR_PARTICLES = 2**63 - 1
MAX_EXTRALONG_TYPE = 3  # generic, history number, LATCH, ILB
MAX_EXTRAFLOAT_TYPE = 3  # generic, XLAST, YLAST, ZLAST
_VARIABLE_COUNT = 7  # x, y, z, u, v, w, weight


def _with_extension(name: str, extension: str) -> str:
    dot = name.rfind(".")
    if dot > 0 and name[dot:] == extension:
        return name
    return name + extension


def _padded(values: list[int], n: int) -> list[int]:
    return (list(values) + [0] * n)[:n]


class PhaseSpaceSource:
    """A phase space opened for reading, writing or appending.

    Use :func:`open_source` to create one. The source is a context manager;
    leaving the ``with`` block closes it and, unless it is read-only, saves
    the header.
    """

    def __init__(
        self,
        header: PhaseSpaceHeader,
        header_path: Path,
        phsp_path: Path,
        access: AccessMode,
        stream: BinaryIO,
    ) -> None:
        self.header = header
        self.header_path = header_path
        self.phsp_path = phsp_path
        self.access = access
        self._stream = stream
        self._cursor = RecordCursor(stream, header)
        self._format: RecordFormat = header.record_format()
        self._used_histories = 0
        self._closed = False

    def __enter__(self) -> PhaseSpaceSource:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[tuple[int, Particle]]:
        """Yield ``(n_stat, particle)`` from the current position to the last record."""
        while not self._cursor.at_end():
            yield self.read_particle()

    @property
    def closed(self) -> bool:
        return self._closed

    def _require_open(self) -> None:
        if self._closed:
            raise PhaseSpaceError("phase-space source is closed")

    def _refresh_format(self) -> None:
        self._format = self.header.record_format()

    def max_particles(self, particle_type: int) -> int:
        """How many particles of a type the source holds; a negative type means all."""
        self._require_open()
        if self.header.file_type == EVENT_GENERATOR:
            return MAX_EVENT_GENERATOR_PARTICLES
        if particle_type < 0:
            return self.header.n_particles
        if particle_type >= MAX_NUM_PARTICLES or particle_type == 0:
            return 0
        return self.header.particle_counts[particle_type - 1]

    def maximum_energy(self) -> float:
        """Largest kinetic energy in the source; -1.0 for an event generator."""
        self._require_open()
        return self.header.maximum_energy()

    def extra_numbers(self) -> tuple[int, int]:
        """Numbers of extra floats and extra integers per record."""
        self._require_open()
        return self.header.n_extra_float, self.header.n_extra_long

    def set_extra_numbers(self, n_extra_float: int, n_extra_int: int) -> None:
        """Set how many extra floats and integers each record stores."""
        self._require_open()
        if n_extra_float < 0 or n_extra_int < 0:
            raise ValueError("numbers of extra variables must not be negative")
        self.header.n_extra_float = n_extra_float
        self.header.n_extra_long = n_extra_int
        self.header.extrafloat_types = _padded(self.header.extrafloat_types, n_extra_float)
        self.header.extralong_types = _padded(self.header.extralong_types, n_extra_int)
        self._refresh_format()

    def set_extralong_type(self, index: int, type_code: int) -> None:
        """Declare the meaning of extra integer ``index`` (1 marks the history number)."""
        self._require_open()
        if not 0 <= index < self.header.n_extra_long:
            raise IndexError(f"extra long index {index} out of range")
        if not 0 <= type_code <= MAX_EXTRALONG_TYPE:
            raise ValueError(f"extra long type {type_code} out of range")
        types = _padded(self.header.extralong_types, self.header.n_extra_long)
        types[index] = type_code
        self.header.extralong_types = types

    def set_extrafloat_type(self, index: int, type_code: int) -> None:
        """Declare the meaning of extra float ``index``."""
        self._require_open()
        if not 0 <= index < self.header.n_extra_float:
            raise IndexError(f"extra float index {index} out of range")
        if not 0 <= type_code <= MAX_EXTRAFLOAT_TYPE:
            raise ValueError(f"extra float type {type_code} out of range")
        types = _padded(self.header.extrafloat_types, self.header.n_extra_float)
        types[index] = type_code
        self.header.extrafloat_types = types

    def extra_types(self) -> tuple[list[int], list[int]]:
        """Types of the extra integers and of the extra floats."""
        self._require_open()
        return (
            _padded(self.header.extralong_types, self.header.n_extra_long),
            _padded(self.header.extrafloat_types, self.header.n_extra_float),
        )

    @staticmethod
    def _check_variable_index(index: int) -> None:
        if not 0 <= index < _VARIABLE_COUNT:
            raise IndexError(f"variable index {index} out of range 0..6")

    def set_constant(self, index: int, value: float) -> None:
        """Make variable ``index`` (x, y, z, u, v, w, weight) a constant, not stored."""
        self._require_open()
        self._check_variable_index(index)
        self.header.stored[index] = False
        self.header.constants[index] = float(value)
        self._refresh_format()

    def get_constant(self, index: int) -> float:
        """Value of constant variable ``index``."""
        self._require_open()
        self._check_variable_index(index)
        if self.header.stored[index]:
            raise PhaseSpaceError(f"variable {index} is stored, not constant")
        return self.header.constants[index]

    def total_original_particles(self) -> int:
        self._require_open()
        return self.header.orig_histories

    def set_total_original_particles(self, count: int) -> None:
        self._require_open()
        self.header.orig_histories = int(count)

    def used_original_particles(self) -> int:
        """Statistically independent histories passed through this source so far."""
        self._require_open()
        return self._used_histories

    def set_parallel(self, i_parallel: int, i_chunk: int, n_chunk: int) -> None:
        """Deliver particles from chunk ``i_chunk`` of ``n_chunk`` equal parts."""
        self._require_open()
        self._cursor.seek_chunk(i_chunk, n_chunk)

    def set_record(self, record_num: int) -> None:
        """Move to record ``record_num``, counted from 1."""
        self._require_open()
        self._cursor.seek_record(record_num)

    def check_file_size_byte_order(self) -> tuple[bool, bool]:
        """Whether the file size matches the checksum and the byte order matches."""
        self._require_open()
        self._stream.flush()
        return self._cursor.check_file_size_byte_order()

    def read_particle(self) -> tuple[int, Particle]:
        """Read the next particle and the number of new histories before it.

        At the end of the records the stream is rewound and EOFError raised.
        """
        self._require_open()
        if self.access == AccessMode.WRITE:
            raise PhaseSpaceError("source is open for writing only")
        if self._cursor.at_end():
            self._cursor.rewind()
            raise EOFError("end of phase-space file reached")
        particle = self._format.read(self._stream)

        n_stat = 1 if particle.new_history else 0
        types = _padded(self.header.extralong_types, self.header.n_extra_long)
        for type_code, value in zip(types, particle.extra_ints):
            if type_code == HISTORY_NUMBER_TYPE:
                n_stat = int(value)
        particle.new_history = n_stat > 0
        self._used_histories += max(n_stat, 0)
        return n_stat, particle

    def write_particle(self, particle: Particle, n_stat: int) -> None:
        """Append a particle; ``n_stat`` > 0 marks it as starting a new history."""
        self._require_open()
        if self.access == AccessMode.READ:
            raise PhaseSpaceError("source is open for reading only")
        code = int(particle.particle_type)
        if not 1 <= code <= MAX_NUM_PARTICLES:
            raise PhaseSpaceError(f"particle type {code} is not supported")
        record = dataclasses.replace(particle, new_history=n_stat > 0)
        self._format.write(self._stream, record)
        self.header.update_counters(record)
        self._used_histories += max(n_stat, 0)

    def update_header(self) -> None:
        """Save the header file; read-only sources are left untouched."""
        self._require_open()
        if self.access == AccessMode.READ:
            return
        self._stream.flush()
        self.header.save(self.header_path)

    def print_header(self) -> None:
        """Print the current header."""
        self._require_open()
        print(self.header.describe())

    def close(self) -> None:
        """Save the header if writable and close the particle file."""
        if self._closed:
            return
        try:
            self.update_header()
        finally:
            self._stream.close()
            self._closed = True


def _open_stream(path: Path, mode: str) -> BinaryIO:
    try:
        return open(path, mode)
    except OSError as exc:
        raise PhaseSpaceError(f"cannot open {path} (mode {mode}): {exc}") from exc


def open_source(path: str | Path, access: AccessMode | int) -> PhaseSpaceSource:
    """Open the phase space named by ``path`` for reading, writing or appending.

    The header and particle files are ``path`` with the extensions
    ``.IAEAheader`` and ``.IAEAphsp`` added unless already present.
    """
    try:
        mode = AccessMode(access)
    except ValueError as exc:
        raise ValueError(f"wrong access mode {access!r}") from exc

    name = str(path).rstrip()
    if not name:
        raise ValueError("phase-space file name is empty")
    header_path = Path(_with_extension(name, HEADER_EXTENSION))
    phsp_path = Path(_with_extension(name, PHSP_EXTENSION))

    if mode == AccessMode.WRITE:
        _open_stream(header_path, "wb").close()
        header = PhaseSpaceHeader()
        stream = _open_stream(phsp_path, "wb")
    elif mode == AccessMode.APPEND:
        header = load_header(header_path)
        stream = _open_stream(phsp_path, "a+b")
    else:
        header = load_header(header_path)
        stream = _open_stream(phsp_path, "rb")

    try:
        return PhaseSpaceSource(header, header_path, phsp_path, mode, stream)
    except PhaseSpaceError:
        stream.close()
        raise