"""Header of an IAEA phase-space file: layout, bookkeeping and descriptive text."""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Iterable, Iterator

from phasespace.record import Particle, RecordFormat

LITTLE_ENDIAN = 1234
BIG_ENDIAN = 4321
NATIVE_BYTE_ORDER = LITTLE_ENDIAN if sys.byteorder == "little" else BIG_ENDIAN

PHASE_SPACE_FILE = 0
EVENT_GENERATOR = 1

MAX_NUM_PARTICLES = 5
HISTORY_NUMBER_TYPE = 1  # extralong type holding the incremental history number

_PARTICLE_NAMES = ("PHOTONS", "ELECTRONS", "POSITRONS", "NEUTRONS", "PROTONS")
_VARIABLE_NAMES = ("X", "Y", "Z", "U", "V", "W", "Weight")
_AXES = ("X", "Y", "Z")

_TEXT_BLOCKS = (
    ("COORDINATE_SYSTEM_DESCRIPTION", "coordinate_system_description"),
    ("MACHINE_TYPE", "machine_type"),
    ("MONTE_CARLO_CODE_VERSION", "mc_code_and_version"),
    ("TRANSPORT_PARAMETERS", "transport_parameters"),
    ("BEAM_NAME", "beam_name"),
    ("FIELD_SIZE", "field_size"),
    ("NOMINAL_SSD", "nominal_ssd"),
    ("VARIANCE_REDUCTION_TECHNIQUES", "variance_reduction_techniques"),
    ("INITIAL_SOURCE_DESCRIPTION", "initial_source_description"),
    ("MC_INPUT_FILENAME", "mc_input_filename"),
    ("PUBLISHED_REFERENCE", "published_reference"),
    ("AUTHORS", "authors"),
    ("INSTITUTION", "institution"),
    ("LINK_VALIDATION", "link_validation"),
    ("ADDITIONAL_NOTES", "additional_notes"),
)

# Descriptive fields copied between headers of ordinary phase-space files.
_COPIED_FIELDS = (
    "orig_histories",
    "machine_type",
    "mc_code_and_version",
    "global_photon_energy_cutoff",
    "global_particle_energy_cutoff",
    "transport_parameters",
    "beam_name",
    "field_size",
    "nominal_ssd",
    "variance_reduction_techniques",
    "initial_source_description",
    "mc_input_filename",
    "published_reference",
    "authors",
    "institution",
    "link_validation",
    "additional_notes",
)


class PhaseSpaceError(Exception):
    """A phase-space header or source is missing, malformed or misused."""


class AccessMode(IntEnum):
    """How a phase-space source is opened."""

    READ = 1
    WRITE = 2
    APPEND = 3


def _inf_list(n: int) -> list[float]:
    return [math.inf] * n


def _neg_inf_list(n: int) -> list[float]:
    return [-math.inf] * n


def _padded(values: list[int], n: int) -> list[int]:
    return (list(values) + [0] * n)[:n]


@dataclass
class PhaseSpaceHeader:
    """Everything the header file of a phase space records, plus running counters."""

    title: str = "PHASESPACE in IAEA format"
    iaea_index: int = 1000
    file_type: int = PHASE_SPACE_FILE
    checksum: int = 0
    byte_order: int = NATIVE_BYTE_ORDER
    stored: list[bool] = field(default_factory=lambda: [True] * 7)
    constants: list[float] = field(default_factory=lambda: [0.0] * 7)
    n_extra_float: int = 0
    n_extra_long: int = 1
    extrafloat_types: list[int] = field(default_factory=list)
    extralong_types: list[int] = field(default_factory=list)
    orig_histories: int = 0
    n_particles: int = 0
    particle_counts: list[int] = field(default_factory=lambda: [0] * MAX_NUM_PARTICLES)
    weight_sums: list[float] = field(default_factory=lambda: [0.0] * MAX_NUM_PARTICLES)
    min_weights: list[float] = field(default_factory=lambda: _inf_list(MAX_NUM_PARTICLES))
    max_weights: list[float] = field(default_factory=lambda: _neg_inf_list(MAX_NUM_PARTICLES))
    energy_sums: list[float] = field(default_factory=lambda: [0.0] * MAX_NUM_PARTICLES)
    min_energies: list[float] = field(default_factory=lambda: _inf_list(MAX_NUM_PARTICLES))
    max_energies: list[float] = field(default_factory=lambda: _neg_inf_list(MAX_NUM_PARTICLES))
    position_min: list[float] = field(default_factory=lambda: _inf_list(3))
    position_max: list[float] = field(default_factory=lambda: _neg_inf_list(3))
    independent_histories: int = 0
    coordinate_system_description: str = ""
    input_file_for_event_generator: str = ""
    machine_type: str = ""
    mc_code_and_version: str = ""
    global_photon_energy_cutoff: float = 0.0
    global_particle_energy_cutoff: float = 0.0
    transport_parameters: str = ""
    beam_name: str = ""
    field_size: str = ""
    nominal_ssd: str = ""
    variance_reduction_techniques: str = ""
    initial_source_description: str = ""
    mc_input_filename: str = ""
    published_reference: str = ""
    authors: str = ""
    institution: str = ""
    link_validation: str = ""
    additional_notes: str = ""

    def _build_format(self, order: str) -> RecordFormat:
        if len(self.stored) != 7 or len(self.constants) != 7:
            raise PhaseSpaceError("record contents must describe 7 variables")
        sx, sy, sz, su, sv, sw, swt = (bool(s) for s in self.stored)
        try:
            return RecordFormat(
                store_x=sx,
                store_y=sy,
                store_z=sz,
                store_u=su,
                store_v=sv,
                store_w=sw,
                store_weight=swt,
                n_extra_float=self.n_extra_float,
                n_extra_long=self.n_extra_long,
                constants=tuple(self.constants),
                byte_order=order,
            )
        except ValueError as exc:
            raise PhaseSpaceError(str(exc)) from exc

    def record_format(self) -> RecordFormat:
        """The particle record layout this header describes."""
        if self.byte_order == LITTLE_ENDIAN:
            order = "<"
        elif self.byte_order == BIG_ENDIAN:
            order = ">"
        else:
            raise PhaseSpaceError(f"unknown byte order {self.byte_order}")
        return self._build_format(order)

    @property
    def record_length(self) -> int:
        """Size in bytes of one particle record."""
        return self._build_format("<").record_length()

    def _history_increment(self, particle: Particle) -> int:
        types = _padded(self.extralong_types, self.n_extra_long)
        for type_code, value in zip(types, particle.extra_ints):
            if type_code == HISTORY_NUMBER_TYPE:
                return max(int(value), 0)
        return 1 if particle.new_history else 0

    def update_counters(self, particle: Particle) -> None:
        """Account for one more particle in the totals and extremes."""
        code = int(particle.particle_type)
        if not 1 <= code <= MAX_NUM_PARTICLES:
            raise PhaseSpaceError(f"particle type {code} is not supported")
        i = code - 1
        self.n_particles += 1
        self.particle_counts[i] += 1
        self.weight_sums[i] += particle.weight
        self.min_weights[i] = min(self.min_weights[i], particle.weight)
        self.max_weights[i] = max(self.max_weights[i], particle.weight)
        self.energy_sums[i] += particle.energy * particle.weight
        self.min_energies[i] = min(self.min_energies[i], particle.energy)
        self.max_energies[i] = max(self.max_energies[i], particle.energy)
        for axis, value in enumerate((particle.x, particle.y, particle.z)):
            self.position_min[axis] = min(self.position_min[axis], value)
            self.position_max[axis] = max(self.position_max[axis], value)
        self.independent_histories += self._history_increment(particle)

    def maximum_energy(self) -> float:
        """Largest kinetic energy of any particle; -1.0 for an event generator."""
        if self.file_type == EVENT_GENERATOR:
            return -1.0
        return max([0.0, *self.max_energies])

    def copy_from(self, other: PhaseSpaceHeader) -> None:
        """Take over the descriptive part of another header."""
        self.checksum = other.checksum
        self.byte_order = other.byte_order
        self.coordinate_system_description = other.coordinate_system_description
        if other.file_type == EVENT_GENERATOR:
            self.input_file_for_event_generator = other.input_file_for_event_generator
            return
        for name in _COPIED_FIELDS:
            setattr(self, name, getattr(other, name))

    def describe(self) -> str:
        """The header as text, in the layout it is saved in."""
        out: list[str] = []

        def block(name: str, *lines: str) -> None:
            out.append(f"${name}:")
            out.extend(lines)
            out.append("")

        block("IAEA_INDEX", str(self.iaea_index))
        block("TITLE", self.title)
        block("FILE_TYPE", str(self.file_type))
        block("CHECKSUM", str(self.checksum))

        contents = [
            f"    {int(bool(s))}     // {name} is stored ?"
            for s, name in zip(self.stored, _VARIABLE_NAMES)
        ]
        contents.append(f"    {self.n_extra_float}     // Number of extra floats stored ?")
        contents.append(f"    {self.n_extra_long}     // Number of extra longs stored ?")
        contents.extend(
            f"    {t}     // Type of extra float [{i}]"
            for i, t in enumerate(_padded(self.extrafloat_types, self.n_extra_float))
        )
        contents.extend(
            f"    {t}     // Type of extra long [{i}]"
            for i, t in enumerate(_padded(self.extralong_types, self.n_extra_long))
        )
        block("RECORD_CONTENTS", *contents)
        block(
            "RECORD_CONSTANT",
            *(
                f"    {float(c)!r}     // Constant {name}"
                for s, c, name in zip(self.stored, self.constants, _VARIABLE_NAMES)
                if not s
            ),
        )
        block("RECORD_LENGTH", str(self.record_length))
        block("BYTE_ORDER", str(self.byte_order))
        if self.file_type == EVENT_GENERATOR:
            block("INPUT_FILE_FOR_EVENT_GENERATOR", self.input_file_for_event_generator)
        block("ORIG_HISTORIES", str(self.orig_histories))
        block("PARTICLES", str(self.n_particles))
        for name, count in zip(_PARTICLE_NAMES, self.particle_counts):
            if count:
                block(name, str(count))

        for name, attr in _TEXT_BLOCKS[:3]:
            block(name, getattr(self, attr))
        block("GLOBAL_PHOTON_ENERGY_CUTOFF", repr(float(self.global_photon_energy_cutoff)))
        block("GLOBAL_PARTICLE_ENERGY_CUTOFF", repr(float(self.global_particle_energy_cutoff)))
        for name, attr in _TEXT_BLOCKS[3:]:
            block(name, getattr(self, attr))

        stats = ["// Weight(sum,min,max)  Energy(mean,min,max)  Particle"]
        for i, name in enumerate(_PARTICLE_NAMES):
            if not self.particle_counts[i]:
                continue
            wsum = self.weight_sums[i]
            mean = self.energy_sums[i] / wsum if wsum else 0.0
            stats.append(
                f"  {wsum!r} {self.min_weights[i]!r} {self.max_weights[i]!r} "
                f"{mean!r} {self.min_energies[i]!r} {self.max_energies[i]!r}  {name}"
            )
        block("STATISTICAL_INFORMATION_PARTICLES", *stats)
        if self.n_particles:
            block(
                "STATISTICAL_INFORMATION_GEOMETRY",
                *(
                    f"  {lo!r} {hi!r}     // {axis} min, max"
                    for lo, hi, axis in zip(self.position_min, self.position_max, _AXES)
                ),
            )
        return "\n".join(out)

    def save(self, path: str | Path) -> None:
        """Write the header file, refreshing the checksum first."""
        if self.file_type == PHASE_SPACE_FILE:
            self.checksum = self.record_length * self.n_particles
        try:
            Path(path).write_text(self.describe(), encoding="utf-8")
        except OSError as exc:
            raise PhaseSpaceError(f"cannot write header {path}: {exc}") from exc


def _split_blocks(text: str) -> dict[str, list[str]]:
    blocks: dict[str, list[str]] = {}
    current: list[str] | None = None
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith("$") and stripped.endswith(":"):
            current = []
            blocks[stripped[1:-1].strip().upper()] = current
        elif current is not None:
            current.append(line)
    return blocks


def _tokens(lines: Iterable[str]) -> Iterator[str]:
    for line in lines:
        data = line.split("//", 1)[0].strip()
        if data:
            yield data


def _number(text: str, conv, section: str):
    try:
        return conv(text)
    except ValueError as exc:
        raise PhaseSpaceError(f"bad value {text!r} in ${section}") from exc


def _scalar(blocks: dict[str, list[str]], name: str, conv, default):
    if name not in blocks:
        return default
    values = list(_tokens(blocks[name]))
    if not values:
        raise PhaseSpaceError(f"${name} section is empty")
    return _number(values[0].split()[0], conv, name)


def _text(blocks: dict[str, list[str]], name: str) -> str:
    return "\n".join(blocks.get(name, [])).strip()


def _parse(text: str) -> PhaseSpaceHeader:
    blocks = _split_blocks(text)
    for required in ("IAEA_INDEX", "FILE_TYPE", "RECORD_CONTENTS", "BYTE_ORDER"):
        if required not in blocks:
            raise PhaseSpaceError(f"header lacks the ${required} section")

    header = PhaseSpaceHeader()
    header.iaea_index = _scalar(blocks, "IAEA_INDEX", int, header.iaea_index)
    header.title = _text(blocks, "TITLE")
    header.file_type = _scalar(blocks, "FILE_TYPE", int, header.file_type)
    header.checksum = _scalar(blocks, "CHECKSUM", int, 0)
    header.byte_order = _scalar(blocks, "BYTE_ORDER", int, header.byte_order)

    contents = [
        _number(t.split()[0], int, "RECORD_CONTENTS") for t in _tokens(blocks["RECORD_CONTENTS"])
    ]
    if len(contents) < 9:
        raise PhaseSpaceError("$RECORD_CONTENTS needs at least 9 entries")
    header.stored = [c != 0 for c in contents[:7]]
    header.n_extra_float, header.n_extra_long = contents[7], contents[8]
    if header.n_extra_float < 0 or header.n_extra_long < 0:
        raise PhaseSpaceError("negative number of extra variables")
    rest = contents[9:]
    header.extrafloat_types = _padded(rest[: header.n_extra_float], header.n_extra_float)
    header.extralong_types = _padded(rest[header.n_extra_float :], header.n_extra_long)

    constant_values = [
        _number(t.split()[0], float, "RECORD_CONSTANT")
        for t in _tokens(blocks.get("RECORD_CONSTANT", []))
    ]
    missing = [i for i, s in enumerate(header.stored) if not s]
    if len(constant_values) != len(missing):
        raise PhaseSpaceError(
            f"$RECORD_CONSTANT holds {len(constant_values)} values, expected {len(missing)}"
        )
    for index, value in zip(missing, constant_values):
        header.constants[index] = value

    header.input_file_for_event_generator = _text(blocks, "INPUT_FILE_FOR_EVENT_GENERATOR")
    header.orig_histories = _scalar(blocks, "ORIG_HISTORIES", int, 0)
    header.n_particles = _scalar(blocks, "PARTICLES", int, 0)
    header.particle_counts = [_scalar(blocks, name, int, 0) for name in _PARTICLE_NAMES]

    for name, attr in _TEXT_BLOCKS:
        setattr(header, attr, _text(blocks, name))
    header.global_photon_energy_cutoff = _scalar(blocks, "GLOBAL_PHOTON_ENERGY_CUTOFF", float, 0.0)
    header.global_particle_energy_cutoff = _scalar(
        blocks, "GLOBAL_PARTICLE_ENERGY_CUTOFF", float, 0.0
    )

    section = "STATISTICAL_INFORMATION_PARTICLES"
    for data in _tokens(blocks.get(section, [])):
        parts = data.split()
        if len(parts) != 7 or parts[6].upper() not in _PARTICLE_NAMES:
            raise PhaseSpaceError(f"bad line {data!r} in ${section}")
        i = _PARTICLE_NAMES.index(parts[6].upper())
        wsum, wmin, wmax, mean, emin, emax = (_number(p, float, section) for p in parts[:6])
        header.weight_sums[i] = wsum
        header.min_weights[i] = wmin
        header.max_weights[i] = wmax
        header.energy_sums[i] = mean * wsum
        header.min_energies[i] = emin
        header.max_energies[i] = emax

    section = "STATISTICAL_INFORMATION_GEOMETRY"
    if section in blocks:
        rows = [t.split() for t in _tokens(blocks[section])]
        if len(rows) != 3 or any(len(r) != 2 for r in rows):
            raise PhaseSpaceError(f"${section} needs a min and max for x, y and z")
        for axis, (lo, hi) in enumerate(rows):
            header.position_min[axis] = _number(lo, float, section)
            header.position_max[axis] = _number(hi, float, section)
    return header


def load_header(path: str | Path) -> PhaseSpaceHeader:
    """Read a header file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise PhaseSpaceError(f"cannot read header {path}: {exc}") from exc
    return _parse(text)