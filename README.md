# phasespace

Read and write particle phase-space files in the IAEA binary format. A phase
space is a pair of files: a text `.IAEAheader` and a binary `.IAEAphsp`. The
extensions are added to the name you give unless it already ends in one.

## Modules

- `phasespace.record`: the binary particle record. `Particle` holds one
  particle (type, kinetic energy in MeV, position, direction, weight, extra
  floats and integers, and whether it starts a new history). `ParticleType`
  lists photon, electron, positron, neutron and proton. `RecordFormat` says
  which quantities a record stores and in which byte order; `read` and
  `write` move one particle from or to a binary stream. The direction cosine
  `w` is not stored: its sign travels in the type byte and its size is
  recomputed from `u` and `v` on reading. A truncated record raises
  `RecordError`; a stream with no further record raises `EOFError`.
- `phasespace.header`: `PhaseSpaceHeader` holds the header, including which
  variables are stored or constant, the extra-variable counts and types, the
  per-particle counts, weight and energy statistics and the position extremes.
  `load_header` reads a header file, `PhaseSpaceHeader.save` writes one
  (refreshing the checksum) and `describe` returns its text. `copy_from` takes
  over the descriptive part of another header. `AccessMode` gives `READ`,
  `WRITE` and `APPEND`. Problems raise `PhaseSpaceError`.
- `phasespace.cursor`: `RecordCursor` moves to a record (`seek_record`,
  counted from 1) or to the start of a chunk (`seek_chunk`), and compares the
  file size and byte order with the header (`check_file_size_byte_order`).
- `phasespace.source`: `open_source(path, access)` returns a
  `PhaseSpaceSource`. It reads and writes particles, sets constant variables
  and extra-variable types, and saves the header on `close` unless it was
  opened read-only. It is a context manager, and iterating over it yields
  `(n_stat, particle)` pairs up to the last record.
- `phasespace.registry`: `SourceRegistry` keeps several open sources under
  small integer ids, reusing freed ids first. It can update, print and copy
  headers by id.

## Reading a phase space

```python
from phasespace.header import AccessMode
from phasespace.source import open_source

with open_source("beam", AccessMode.READ) as source:
    print(source.max_particles(-1), source.maximum_energy())
    for n_stat, particle in source:
        print(n_stat, particle.particle_type, particle.energy, particle.x, particle.y)
```

`read_particle()` returns the next `(n_stat, particle)` pair. At the end of
the records it rewinds the file and raises `EOFError`.

## Writing a phase space

```python
from phasespace.header import AccessMode
from phasespace.record import Particle, ParticleType
from phasespace.source import open_source

with open_source("out", AccessMode.WRITE) as source:
    source.set_constant(2, 100.0)  # z is the same for every particle
    source.set_total_original_particles(1000)
    source.write_particle(
        Particle(ParticleType.PHOTON, energy=6.0, x=0.1, y=-0.2, z=100.0,
                 u=0.0, v=0.0, w=1.0, weight=1.0, extra_ints=(1,)),
        n_stat=1,
    )
```

By default a record stores one extra integer; `set_extra_numbers` changes the
counts, and `set_extralong_type(index, 1)` marks an extra integer as the
incremental history number.

## Several sources at once

```python
from phasespace.header import AccessMode
from phasespace.registry import SourceRegistry

with SourceRegistry() as registry:
    src = registry.new_source("beam", AccessMode.READ)
    dst = registry.new_source("copy", AccessMode.WRITE)
    registry.copy_header(src, dst)
```

## What it does not do

The package is a library only: it has no command-line tool, no plotting of
phase-space contents, and no hook into a particle-transport simulation that
records particles as they cross planes. Those who generate particles write
them themselves with `PhaseSpaceSource.write_particle`.

## Running the tests

```
pip install -e ".[test]"
pytest
```