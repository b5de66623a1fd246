"""Binary particle records of an IAEA phase-space file."""

from __future__ import annotations

import math
import struct
import sys
from dataclasses import dataclass, field
from enum import IntEnum
from typing import BinaryIO, Sequence

_NATIVE_ORDER = "<" if sys.byteorder == "little" else ">"
_CONSTANT_COUNT = 7  # x, y, z, u, v, w, weight


class RecordError(Exception):
    """A particle record could not be read or written."""


class ParticleType(IntEnum):
    """Particle codes used by the IAEA phase-space format."""

    PHOTON = 1
    ELECTRON = 2
    POSITRON = 3
    NEUTRON = 4
    PROTON = 5


@dataclass
class Particle:
    """One particle: type, kinetic energy in MeV, position, direction and weight."""

    particle_type: int
    energy: float
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    u: float = 0.0
    v: float = 0.0
    w: float = 0.0
    weight: float = 1.0
    extra_floats: tuple[float, ...] = ()
    extra_ints: tuple[int, ...] = ()
    new_history: bool = False


def _f32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", value))[0]


def _particle_code(value: int) -> int:
    try:
        return ParticleType(value)
    except ValueError:
        return value


@dataclass
class RecordFormat:
    """Layout of a particle record: which quantities are stored and how many extras.

    Quantities that are not stored take their value from ``constants``
    (ordered x, y, z, u, v, w, weight) when a record is read. The direction
    cosine w is never written; its sign travels in the particle type byte.
    """

    store_x: bool = True
    store_y: bool = True
    store_z: bool = True
    store_u: bool = True
    store_v: bool = True
    store_w: bool = True
    store_weight: bool = True
    n_extra_float: int = 0
    n_extra_long: int = 1
    constants: tuple[float, ...] = field(default=(0.0,) * _CONSTANT_COUNT)
    byte_order: str = _NATIVE_ORDER

    def __post_init__(self) -> None:
        if self.n_extra_float < 0:
            raise ValueError("n_extra_float must not be negative")
        if self.n_extra_long < 0:
            raise ValueError("n_extra_long must not be negative")
        self.constants = tuple(float(c) for c in self.constants)
        if len(self.constants) != _CONSTANT_COUNT:
            raise ValueError(f"constants must hold {_CONSTANT_COUNT} values")
        if self.byte_order not in ("<", ">"):
            raise ValueError("byte_order must be '<' or '>'")

    @property
    def _stored_flags(self) -> tuple[bool, ...]:
        return (
            self.store_x,
            self.store_y,
            self.store_z,
            self.store_u,
            self.store_v,
            self.store_weight,
        )

    def float_count(self) -> int:
        """Number of 32-bit floats in a record, energy included."""
        return 1 + sum(self._stored_flags) + self.n_extra_float

    def record_length(self) -> int:
        """Size of one record in bytes."""
        return 1 + 4 * self.float_count() + 4 * self.n_extra_long

    def write(self, stream: BinaryIO, particle: Particle) -> None:
        """Append one particle record to a binary stream."""
        code = int(particle.particle_type)
        if particle.w < 0:
            code = -code

        energy = -particle.energy if particle.new_history else particle.energy
        values = (particle.x, particle.y, particle.z, particle.u, particle.v, particle.weight)
        floats = [energy]
        floats.extend(value for stored, value in zip(self._stored_flags, values) if stored)

        if len(particle.extra_floats) < self.n_extra_float:
            raise RecordError(
                f"record needs {self.n_extra_float} extra floats, "
                f"got {len(particle.extra_floats)}"
            )
        floats.extend(particle.extra_floats[: self.n_extra_float])

        if len(particle.extra_ints) < self.n_extra_long:
            raise RecordError(
                f"record needs {self.n_extra_long} extra integers, "
                f"got {len(particle.extra_ints)}"
            )
        ints = particle.extra_ints[: self.n_extra_long]

        order = self.byte_order
        try:
            data = (
                struct.pack("b", code)
                + struct.pack(f"{order}{len(floats)}f", *floats)
                + struct.pack(f"{order}{len(ints)}i", *ints)
            )
        except (struct.error, OverflowError) as exc:
            raise RecordError(f"cannot encode particle: {exc}") from exc
        stream.write(data)

    def read(self, stream: BinaryIO) -> Particle:
        """Read the next particle record.

        Raises EOFError when the stream holds no further record and
        RecordError when a record is cut short.
        """
        head = stream.read(1)
        if not head:
            raise EOFError("no more particle records")
        (code,) = struct.unpack("b", head)
        sign = -1 if code < 0 else 1
        code = abs(code)

        order = self.byte_order
        n_floats = self.float_count()
        floats = iter(struct.unpack(f"{order}{n_floats}f", self._read_exact(stream, 4 * n_floats, "floats")))

        first = next(floats)
        new_history = first < 0
        energy = abs(first)

        c = self.constants
        x = next(floats) if self.store_x else c[0]
        y = next(floats) if self.store_y else c[1]
        z = next(floats) if self.store_z else c[2]
        u = next(floats) if self.store_u else c[3]
        v = next(floats) if self.store_v else c[4]
        weight = next(floats) if self.store_weight else c[6]
        extra_floats = tuple(floats)

        if self.store_w:
            w = 0.0
            aux = u * u + v * v
            if aux <= 1.0:
                w = _f32(sign * math.sqrt(_f32(1.0 - aux)))
            else:
                norm = math.sqrt(_f32(aux))
                u = _f32(u / norm)
                v = _f32(v / norm)
        else:
            w = c[5]

        extra_ints: tuple[int, ...] = ()
        if self.n_extra_long:
            data = self._read_exact(stream, 4 * self.n_extra_long, "integers")
            extra_ints = struct.unpack(f"{order}{self.n_extra_long}i", data)

        return Particle(
            particle_type=_particle_code(code),
            energy=energy,
            x=x,
            y=y,
            z=z,
            u=u,
            v=v,
            w=w,
            weight=weight,
            extra_floats=extra_floats,
            extra_ints=tuple(extra_ints),
            new_history=new_history,
        )

    @staticmethod
    def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
        data = stream.read(size)
        if len(data) != size:
            raise RecordError(f"truncated record: failed to read {what}")
        return data


def _write_all(fmt: RecordFormat, stream: BinaryIO, particles: Sequence[Particle]) -> None:
    for particle in particles:
        fmt.write(stream, particle)