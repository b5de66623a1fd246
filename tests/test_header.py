import math

import pytest

from phasespace.header import (
    BIG_ENDIAN,
    EVENT_GENERATOR,
    LITTLE_ENDIAN,
    PhaseSpaceError,
    PhaseSpaceHeader,
    load_header,
)
from phasespace.record import Particle, ParticleType, RecordFormat


def _photon(energy=6.0, **kwargs):
    values = dict(x=1.0, y=-2.0, z=200.0, u=0.0, v=0.0, w=1.0, weight=1.0, extra_ints=(1,))
    values.update(kwargs)
    return Particle(ParticleType.PHOTON, energy, **values)


def test_defaults_match_source():
    header = PhaseSpaceHeader()
    assert header.title == "PHASESPACE in IAEA format"
    assert header.iaea_index == 1000
    assert header.n_extra_long == 1


def test_record_length_matches_record_format():
    header = PhaseSpaceHeader()
    assert header.record_length == RecordFormat().record_length()
    header.stored[2] = False
    assert header.record_length == RecordFormat(store_z=False).record_length()


def test_record_format_reflects_contents():
    header = PhaseSpaceHeader()
    header.stored[2] = False
    header.constants[2] = 200.0
    header.n_extra_float = 2
    fmt = header.record_format()
    assert fmt.store_z is False
    assert fmt.constants[2] == 200.0
    assert fmt.n_extra_float == 2


@pytest.mark.parametrize("order,expected", [(LITTLE_ENDIAN, "<"), (BIG_ENDIAN, ">")])
def test_record_format_byte_order(order, expected):
    header = PhaseSpaceHeader(byte_order=order)
    assert header.record_format().byte_order == expected


def test_unknown_byte_order_raises():
    with pytest.raises(PhaseSpaceError):
        PhaseSpaceHeader(byte_order=9999).record_format()


def test_update_counters_totals():
    header = PhaseSpaceHeader()
    header.update_counters(_photon(6.0, weight=1.0))
    header.update_counters(_photon(1.5, weight=0.5, x=-3.0))
    header.update_counters(Particle(ParticleType.ELECTRON, 2.0, weight=2.0, extra_ints=(0,)))
    assert header.n_particles == 3
    assert header.particle_counts[0] == 2
    assert header.particle_counts[1] == 1
    assert header.min_energies[0] == 1.5
    assert header.max_energies[0] == 6.0
    assert header.weight_sums[0] == 1.5
    assert header.min_weights[0] == 0.5
    assert header.position_min[0] == -3.0
    assert sum(header.particle_counts) == header.n_particles


def test_update_counters_rejects_unknown_type():
    with pytest.raises(PhaseSpaceError):
        PhaseSpaceHeader().update_counters(Particle(9, 1.0, extra_ints=(0,)))


def test_independent_histories_from_history_number():
    header = PhaseSpaceHeader(extralong_types=[1])
    header.update_counters(_photon(extra_ints=(3,)))
    header.update_counters(_photon(extra_ints=(0,)))
    assert header.independent_histories == 3


def test_independent_histories_from_new_history_flag():
    header = PhaseSpaceHeader(extralong_types=[0])
    header.update_counters(_photon(new_history=True, extra_ints=(7,)))
    header.update_counters(_photon(new_history=False, extra_ints=(7,)))
    assert header.independent_histories == 1


def test_maximum_energy():
    header = PhaseSpaceHeader()
    assert header.maximum_energy() == 0.0
    header.update_counters(_photon(6.0))
    header.update_counters(_photon(2.5))
    assert header.maximum_energy() == 6.0
    header.file_type = EVENT_GENERATOR
    assert header.maximum_energy() == -1.0


def test_copy_from_phase_space_file():
    source = PhaseSpaceHeader(
        checksum=66,
        byte_order=BIG_ENDIAN,
        coordinate_system_description="cartesian",
        orig_histories=500,
        machine_type="linac",
        authors="Group One",
        global_photon_energy_cutoff=0.01,
    )
    source.update_counters(_photon())
    target = PhaseSpaceHeader()
    target.copy_from(source)
    assert target.checksum == 66
    assert target.byte_order == BIG_ENDIAN
    assert target.coordinate_system_description == "cartesian"
    assert target.orig_histories == 500
    assert target.machine_type == "linac"
    assert target.authors == "Group One"
    assert target.global_photon_energy_cutoff == 0.01
    assert target.n_particles == 0


def test_copy_from_event_generator_copies_little():
    source = PhaseSpaceHeader(
        file_type=EVENT_GENERATOR,
        input_file_for_event_generator="gen.inp",
        orig_histories=500,
        machine_type="linac",
    )
    target = PhaseSpaceHeader()
    target.copy_from(source)
    assert target.input_file_for_event_generator == "gen.inp"
    assert target.orig_histories == 0
    assert target.machine_type == ""


def test_describe_lists_sections():
    text = PhaseSpaceHeader().describe()
    assert "$IAEA_INDEX:" in text
    assert "PHASESPACE in IAEA format" in text
    assert "$RECORD_CONTENTS:" in text


def test_save_sets_checksum(tmp_path):
    header = PhaseSpaceHeader()
    header.update_counters(_photon())
    header.update_counters(_photon())
    header.save(tmp_path / "a.IAEAheader")
    assert header.checksum == header.record_length * header.n_particles
    assert load_header(tmp_path / "a.IAEAheader").checksum == header.checksum


def test_save_load_round_trip(tmp_path):
    header = PhaseSpaceHeader(
        orig_histories=1234,
        n_extra_float=1,
        extrafloat_types=[3],
        extralong_types=[1],
        authors="Group One\nGroup Two",
        beam_name="beam A",
        global_particle_energy_cutoff=0.7,
    )
    header.stored[2] = False
    header.constants[2] = 200.0
    header.update_counters(_photon(6.0, weight=0.5, extra_floats=(1.0,)))
    header.update_counters(_photon(1.5, weight=2.0, extra_floats=(1.0,), x=4.0))
    header.update_counters(
        Particle(ParticleType.POSITRON, 3.0, weight=1.0, extra_floats=(0.0,), extra_ints=(0,))
    )
    path = tmp_path / "b.IAEAheader"
    header.save(path)
    loaded = load_header(path)

    assert loaded.stored == header.stored
    assert loaded.constants == header.constants
    assert loaded.n_extra_float == 1
    assert loaded.extrafloat_types == [3]
    assert loaded.extralong_types == [1]
    assert loaded.orig_histories == 1234
    assert loaded.n_particles == header.n_particles
    assert loaded.particle_counts == header.particle_counts
    assert loaded.weight_sums == header.weight_sums
    assert loaded.min_energies == header.min_energies
    assert loaded.max_energies == header.max_energies
    assert loaded.energy_sums == pytest.approx(header.energy_sums)
    assert loaded.position_min == header.position_min
    assert loaded.position_max == header.position_max
    assert loaded.authors == "Group One\nGroup Two"
    assert loaded.beam_name == "beam A"
    assert loaded.global_particle_energy_cutoff == 0.7
    assert loaded.record_length == header.record_length


def test_round_trip_of_empty_header_keeps_infinite_extremes(tmp_path):
    path = tmp_path / "c.IAEAheader"
    PhaseSpaceHeader().save(path)
    loaded = load_header(path)
    assert loaded.n_particles == 0
    assert all(math.isinf(v) for v in loaded.min_energies)
    assert loaded.maximum_energy() == 0.0


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(PhaseSpaceError):
        load_header(tmp_path / "absent.IAEAheader")


def test_load_without_record_contents_raises(tmp_path):
    path = tmp_path / "d.IAEAheader"
    path.write_text("$IAEA_INDEX:\n1000\n\n$FILE_TYPE:\n0\n\n$BYTE_ORDER:\n1234\n")
    with pytest.raises(PhaseSpaceError):
        load_header(path)


def test_load_with_wrong_constant_count_raises(tmp_path):
    header = PhaseSpaceHeader()
    header.stored[2] = False
    path = tmp_path / "e.IAEAheader"
    header.save(path)
    text = path.read_text().replace("$RECORD_CONSTANT:\n", "$RECORD_CONSTANT:\n 1.0\n")
    path.write_text(text)
    with pytest.raises(PhaseSpaceError):
        load_header(path)