import logging

import pytest

from neut2rootracker.assemble import EventRecordAssembler, FileWeights, assemble_all
from neut2rootracker.config import ConversionConfig, EnergyUnit
from neut2rootracker.errors import CapacityExceededError
from neut2rootracker.models import FsiParticle, NeutParticle, SourceFile

from conftest import make_event, make_fsi_event


def _source(path="a.root", n=4, flux=2.0, evtrt=8.0):
    return SourceFile(path=path, n_entries=n, flux_integral=flux, event_rate_integral=evtrt)


def test_metadata_copied(fsi_event):
    fsi_event.event_number = 42
    asm = EventRecordAssembler(ConversionConfig())
    rec = asm.assemble(fsi_event)
    assert rec.evt_code == "13"
    assert rec.evt_num == 42
    assert rec.evt_xsec == 12.5
    assert (rec.ne_crsx, rec.ne_crsy, rec.ne_crsz, rec.ne_crsphi) == pytest.approx((0.1, 0.2, 0.3, 0.4))
    assert rec.evt_vtx.tolist() == [1.0, 2.0, 3.0, 0.0]
    assert rec.is_bound == 1
    assert rec.evt_dxsec == 0.0
    assert rec.evt_prob == 0.0
    assert not rec.x4.any()
    assert rec.generator_name == "NEUT"
    assert asm.n_assembled == 1


def test_negative_mode_rendered_as_decimal_string(event_factory):
    rec = EventRecordAssembler(ConversionConfig()).assemble(event_factory(mode=-26))
    assert rec.evt_code == "-26"


@pytest.mark.parametrize("vertices", [[], [(1.0, 1.0, 1.0, 0.0), (2.0, 2.0, 2.0, 0.0)]])
def test_vertex_fallback(event_factory, vertices, caplog):
    ev = event_factory(vertices=vertices)
    with caplog.at_level(logging.WARNING, logger="neut2rootracker"):
        rec = EventRecordAssembler(ConversionConfig()).assemble(ev, 5)
    assert not rec.evt_vtx.any()
    assert any(f"had {len(vertices)} entries, expected 1" in r.getMessage() for r in caplog.records)


def test_weights_follow_file_boundaries(event_factory):
    first = _source("a.root", n=4, flux=2.0, evtrt=8.0)
    second = _source("b.root", n=10, flux=5.0, evtrt=20.0)
    asm = EventRecordAssembler(ConversionConfig())

    ev = event_factory()
    ev.source = first
    rec = asm.assemble(ev, 0)
    assert rec.evt_wght == pytest.approx(8.0 / (2.0 * 4))
    assert rec.evt_hist_wght == pytest.approx(8.0 / 4)
    assert rec.n_entries_in_file == 4

    ev = event_factory()
    ev.source = second
    rec = asm.assemble(ev, 4)
    # per-file entry count, not the running total
    assert rec.evt_wght == pytest.approx(20.0 / (5.0 * 10))
    assert rec.evt_hist_wght == pytest.approx(2.0)
    assert rec.n_entries_in_file == 10


def test_weights_cached_until_file_changes():
    weights = FileWeights()
    src = _source()
    assert weights.update(src, 0)
    assert not weights.update(src, 1)
    assert weights.update(_source("c.root"), 2)


def test_missing_histogram_zeroes_weights():
    weights = FileWeights()
    weights.update(_source())
    assert weights.evt_wght > 0
    weights.update(SourceFile(path="nohist.root", n_entries=3, flux_integral=1.0))
    assert weights.evt_wght == 0.0
    assert weights.evt_hist_wght == 0.0
    assert weights.n_entries_in_file == 3


def test_zero_flux_gives_zero_event_weight():
    weights = FileWeights()
    weights.update(_source(flux=0.0, evtrt=6.0, n=3))
    assert weights.evt_wght == 0.0
    assert weights.evt_hist_wght == pytest.approx(2.0)


def test_ignored_mode(event_factory):
    asm = EventRecordAssembler(ConversionConfig.from_options(ignore_modes="2,27"))
    rec = asm.assemble(event_factory(event_number=1, mode=1))
    assert rec is not None
    snapshot = rec.snapshot()

    assert asm.assemble(event_factory(event_number=2, mode=27)) is None
    assert asm.n_ignored == 1
    assert asm.n_assembled == 1
    after = asm.record.snapshot()
    assert after["EvtNum"] == snapshot["EvtNum"]
    assert after["StdHepN"] == snapshot["StdHepN"]


def test_ignored_event_still_updates_file_weights(event_factory):
    asm = EventRecordAssembler(ConversionConfig.from_options(ignore_modes=[1]))
    ev = event_factory(mode=1)
    ev.source = _source("first.root")
    assert asm.assemble(ev) is None
    assert asm.weights.source_key == "first.root"


def test_lite_mode_skips_auxiliary_sections(fsi_event):
    rec = EventRecordAssembler(ConversionConfig(lite_mode=True)).assemble(fsi_event)
    assert rec.evt_code == "13"
    assert rec.n == 6
    assert rec.evt_xsec == 0.0
    assert not rec.evt_vtx.any()
    assert rec.ne_nvc == 0
    assert rec.ne_nvert == 0
    assert rec.nf_nvert == 0


def test_vcwork_copy(fsi_event):
    rec = EventRecordAssembler(ConversionConfig(energy_unit=EnergyUnit.GEV)).assemble(fsi_event)
    assert rec.ne_nvc == fsi_event.n_particles
    assert rec.ne_ipvc[: rec.ne_nvc].tolist() == [p.pdg_id for p in fsi_event.particles]
    assert rec.ne_iflgvc[: rec.ne_nvc].tolist() == [p.status for p in fsi_event.particles]
    assert rec.ne_icrnvc[: rec.ne_nvc].tolist() == [int(p.is_alive) for p in fsi_event.particles]
    assert not rec.ne_iorgvc.any()
    assert rec.ne_pvc[0, 2] == pytest.approx(1.2)


def test_pion_fsi_copy(fsi_event):
    rec = EventRecordAssembler(ConversionConfig()).assemble(fsi_event)
    assert rec.ne_nvert == 2
    assert rec.ne_iflgvert[:2].tolist() == [0, 3]
    assert rec.ne_posvert[1].tolist() == pytest.approx([1.0, 1.5, 2.0])
    assert rec.ne_nvcvert == 1
    assert rec.ne_dirvert[0].tolist() == pytest.approx([0.0, 0.6, 0.8])
    assert rec.ne_abspvert[0] == pytest.approx(250.0)
    assert rec.ne_abstpvert[0] == pytest.approx(240.0)
    assert (rec.ne_ipvert[0], rec.ne_iverti[0], rec.ne_ivertf[0]) == (211, 0, 1)


def test_nucleon_fsi_components_copied_individually(fsi_event):
    rec = EventRecordAssembler(ConversionConfig()).assemble(fsi_event)
    assert rec.nf_nvert == 2
    assert rec.nf_iflag[:2].tolist() == [1001, 2002]
    assert rec.nf_p4[1].tolist() == pytest.approx([4.0, 5.0, 6.0, 950.0])
    assert rec.nf_pos[0].tolist() == pytest.approx([0.1, 0.2, 0.3])
    assert rec.nf_firststep[:2].tolist() == [0, 1]
    assert rec.nf_nstep == 3
    assert rec.nf_prob[:3].tolist() == pytest.approx([0.25, 0.5, 0.75])


def test_fsi_capacity_exceeded():
    ev = make_fsi_event()
    ev.fsi_particles = [FsiParticle()] * 301
    with pytest.raises(CapacityExceededError):
        EventRecordAssembler(ConversionConfig()).assemble(ev)


def test_record_reset_between_events(event_factory):
    asm = EventRecordAssembler(ConversionConfig())
    asm.assemble(make_fsi_event())
    rec = asm.assemble(event_factory(event_number=3))
    assert rec.n == 5
    assert rec.nf_nvert == 0
    assert rec.ne_nvert == 0
    assert rec.evt_xsec == 0.0


def test_debug_dump(event_factory, caplog):
    with caplog.at_level(logging.DEBUG, logger="neut2rootracker"):
        EventRecordAssembler(ConversionConfig()).assemble(event_factory())
    assert any("Incoming Neutrino" in r.getMessage() for r in caplog.records)


def test_assemble_all_schema(event_factory):
    events = [event_factory(event_number=1, mode=1), event_factory(event_number=2, mode=2)]
    rows = assemble_all(events, ConversionConfig(lite_mode=True, save_is_bound=True, ignore_modes=[2]))
    assert len(rows) == 1
    assert set(rows[0]) == {"EvtCode", "EvtNum", "StdHepN", "StdHepPdg", "StdHepStatus", "StdHepP4", "IsBound"}
    assert rows[0]["StdHepPdg"].tolist() == [14, 1000060120, 2112, 13, 2212]


def test_struck_nucleon_pdg_present_in_schema_only_when_requested(event_factory):
    events = [event_factory()]
    assert "StruckNucleonPDG" not in assemble_all(events, ConversionConfig(lite_mode=True))[0]
    row = assemble_all(events, ConversionConfig(lite_mode=True, emulate_nuwro=True))[0]
    assert row["StruckNucleonPDG"] == 2112
    assert row["StdHepN"] == 4


def test_neutrino_input_kept_verbatim(event_factory):
    ev = event_factory()
    ev.particles[0] = NeutParticle(-12, -1, True, 1.0, 2.0, 3.0, 4.0)
    rec = EventRecordAssembler(ConversionConfig()).assemble(ev)
    assert int(rec.stdhep.pdg[0]) == -12
    assert tuple(rec.stdhep.p4[0]) == (1.0, 2.0, 3.0, 4.0)
