"""Test fixtures.

NEUT input files are generated here rather than shipped: the ROOT files
under ``tests/fixtures/`` are (re)written with uproot at test collection
time if they are missing, and the builders are exposed as fixtures for tests
that need their own inputs in ``tmp_path``.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Optional, Sequence

import awkward as ak
import numpy as np
import pytest
import uproot

from neut2rootracker.models import (
    FsiParticle,
    FsiVertex,
    NeutEvent,
    NeutParticle,
    NucleonFsiStep,
    NucleonFsiVertex,
)

FIXTURES = Path(__file__).parent / "fixtures"

# fields of each jagged group, as (branch suffix, attribute getter, dtype)
_PARTICLE_FIELDS = (
    ("PID", lambda p: p.pdg_id, np.int32),
    ("Status", lambda p: p.status, np.int32),
    ("IsAlive", lambda p: p.is_alive, np.bool_),
    ("Px", lambda p: p.px, np.float64),
    ("Py", lambda p: p.py, np.float64),
    ("Pz", lambda p: p.pz, np.float64),
    ("E", lambda p: p.energy, np.float64),
)
_VERTEX_FIELDS = (
    ("X", lambda v: v[0], np.float64),
    ("Y", lambda v: v[1], np.float64),
    ("Z", lambda v: v[2], np.float64),
    ("T", lambda v: v[3], np.float64),
)
_FSI_VERTEX_FIELDS = (
    ("X", lambda v: v.x, np.float32),
    ("Y", lambda v: v.y, np.float32),
    ("Z", lambda v: v.z, np.float32),
    ("ID", lambda v: v.vert_id, np.int32),
)
_FSI_PARTICLE_FIELDS = (
    ("DirX", lambda p: p.dir_x, np.float32),
    ("DirY", lambda p: p.dir_y, np.float32),
    ("DirZ", lambda p: p.dir_z, np.float32),
    ("MomLab", lambda p: p.mom_lab, np.float32),
    ("MomNuc", lambda p: p.mom_nuc, np.float32),
    ("PID", lambda p: p.pdg_id, np.int32),
    ("VertStart", lambda p: p.vert_start, np.int32),
    ("VertEnd", lambda p: p.vert_end, np.int32),
)
_NUCLEON_FSI_VERTEX_FIELDS = (
    ("Flag", lambda v: v.flag, np.int32),
    ("X", lambda v: v.x, np.float32),
    ("Y", lambda v: v.y, np.float32),
    ("Z", lambda v: v.z, np.float32),
    ("Px", lambda v: v.px, np.float32),
    ("Py", lambda v: v.py, np.float32),
    ("Pz", lambda v: v.pz, np.float32),
    ("E", lambda v: v.energy, np.float32),
    ("FirstStep", lambda v: v.first_step, np.int32),
)
_NUCLEON_FSI_STEP_FIELDS = (
    ("Ecms2", lambda s: s.ecms2, np.float32),
    ("Prob", lambda s: s.prob, np.float32),
)


def make_event(
    event_number: int = 1,
    mode: int = 1,
    particles: Optional[Sequence[NeutParticle]] = None,
    target: tuple[int, int] = (6, 12),
    vertices: Optional[Sequence[tuple]] = None,
    **kwargs,
) -> NeutEvent:
    """CCQE-like numu event on carbon unless told otherwise.

    neutrino (14, E=1000), struck neutron (2112, E=939), muon (13, E=500)
    and a proton (2212, E=1100), all moving along z.
    """
    if particles is None:
        particles = [
            NeutParticle(14, -1, True, 0.0, 0.0, 1000.0, 1000.0),
            NeutParticle(2112, -1, True, 10.0, -20.0, 30.0, 939.0),
            NeutParticle(13, 0, True, 5.0, 5.0, 480.0, 500.0),
            NeutParticle(2212, 0, True, -5.0, -5.0, 400.0, 1100.0),
        ]
    if vertices is None:
        vertices = [(1.0, 2.0, 3.0, 0.0)]
    return NeutEvent(
        event_number=event_number,
        mode=mode,
        target_z=target[0],
        target_a=target[1],
        particles=list(particles),
        vertices=list(vertices),
        **kwargs,
    )


def make_fsi_event(event_number: int = 1, mode: int = 13) -> NeutEvent:
    """Single pion event with a pion and a nucleon FSI history."""
    particles = [
        NeutParticle(14, -1, True, 0.0, 0.0, 1200.0, 1200.0),
        NeutParticle(2212, -1, True, 0.0, 100.0, 0.0, 943.0),
        NeutParticle(13, 0, True, 0.0, 0.0, 600.0, 610.0),
        NeutParticle(211, 3, False, 0.0, 50.0, 150.0, 220.0),
        NeutParticle(2212, 0, True, 0.0, 50.0, 450.0, 1050.0),
    ]
    return make_event(
        event_number=event_number,
        mode=mode,
        particles=particles,
        total_xsec=12.5,
        crsx=0.1,
        crsy=0.2,
        crsz=0.3,
        crsphi=0.4,
        is_bound=1,
        fsi_vertices=[FsiVertex(0.5, 0.5, 0.5, 0), FsiVertex(1.0, 1.5, 2.0, 3)],
        fsi_particles=[FsiParticle(0.0, 0.6, 0.8, 250.0, 240.0, 211, 0, 1)],
        nucleon_fsi_vertices=[
            NucleonFsiVertex(1001, 0.1, 0.2, 0.3, 1.0, 2.0, 3.0, 940.0, 0),
            NucleonFsiVertex(2002, 0.4, 0.5, 0.6, 4.0, 5.0, 6.0, 950.0, 1),
        ],
        nucleon_fsi_steps=[NucleonFsiStep(3.5e6, 0.25), NucleonFsiStep(3.6e6, 0.5), NucleonFsiStep(3.7e6, 0.75)],
    )


def _group(items_per_event, fields):
    counts = np.asarray([len(items) for items in items_per_event], dtype=np.int64)
    columns = {}
    for suffix, get, dtype in fields:
        flat = np.asarray([get(item) for items in items_per_event for item in items], dtype=dtype)
        columns[suffix] = ak.unflatten(flat, counts)
    return ak.zip(columns)


def write_neut_root(
    path,
    events: Sequence[NeutEvent],
    *,
    flux: Optional[Sequence[float]] = None,
    evtrt: Optional[Sequence[float]] = None,
) -> Path:
    """Write ``events`` as a flattened ``neuttree`` plus the weight histograms."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "EventNo": np.asarray([ev.event_number for ev in events], dtype=np.int32),
        "Mode": np.asarray([ev.mode for ev in events], dtype=np.int32),
        "Totcrs": np.asarray([ev.total_xsec for ev in events], dtype=np.float64),
        "Crsx": np.asarray([ev.crsx for ev in events], dtype=np.float32),
        "Crsy": np.asarray([ev.crsy for ev in events], dtype=np.float32),
        "Crsz": np.asarray([ev.crsz for ev in events], dtype=np.float32),
        "Crsphi": np.asarray([ev.crsphi for ev in events], dtype=np.float32),
        "TargetZ": np.asarray([ev.target_z for ev in events], dtype=np.int32),
        "TargetA": np.asarray([ev.target_a for ev in events], dtype=np.int32),
        "Ibound": np.asarray([ev.is_bound for ev in events], dtype=np.int32),
        "Part": _group([ev.particles for ev in events], _PARTICLE_FIELDS),
        "Vtx": _group([ev.vertices for ev in events], _VERTEX_FIELDS),
        "FsiVert": _group([ev.fsi_vertices for ev in events], _FSI_VERTEX_FIELDS),
        "FsiPart": _group([ev.fsi_particles for ev in events], _FSI_PARTICLE_FIELDS),
        "NFVert": _group([ev.nucleon_fsi_vertices for ev in events], _NUCLEON_FSI_VERTEX_FIELDS),
        "NFStep": _group([ev.nucleon_fsi_steps for ev in events], _NUCLEON_FSI_STEP_FIELDS),
    }
    types = {
        k: v.type if isinstance(v, ak.Array) else np.dtype((v.dtype, v.shape[1:]))
        for k, v in data.items()
    }
    with uproot.recreate(path) as f:
        tree = f.mktree(
            "neuttree",
            types,
            counter_name=lambda counted: "n" + counted,
            field_name=lambda outer, inner: outer + inner,
        )
        if len(events):
            tree.extend(data)
        for name, contents in (("flux_numu", flux), ("evtrt_numu", evtrt)):
            if contents is not None:
                contents = np.asarray(contents, dtype=np.float64)
                f[name] = (contents, np.linspace(0.0, 10.0, len(contents) + 1))
    return path


def write_neut_parquet(
    path,
    events: Sequence[NeutEvent],
    *,
    flux: Optional[Sequence[float]] = None,
    evtrt: Optional[Sequence[float]] = None,
) -> Path:
    """Write ``events`` one per row, histograms in the schema metadata."""
    import pyarrow as pa
    import pyarrow.parquet as pq

    rows = []
    for ev in events:
        d = asdict(ev)
        d.pop("source")
        d["vertices"] = [{"x": x, "y": y, "z": z, "t": t} for x, y, z, t in ev.vertices]
        rows.append(d)
    table = pa.Table.from_pylist(rows)
    md = {}
    if flux is not None:
        md["neut2rootracker.flux_numu"] = json.dumps(list(flux))
    if evtrt is not None:
        md["neut2rootracker.evtrt_numu"] = json.dumps(list(evtrt))
    table = table.replace_schema_metadata(md)
    pq.write_table(table, str(path))
    return Path(path)


def _ensure_standard_fixtures(fixtures: Path) -> None:
    first = fixtures / "neutvect_1.root"
    second = fixtures / "neutvect_2.root"
    if not first.exists():
        write_neut_root(
            first,
            [make_event(event_number=i, mode=1 if i % 2 else 2) for i in range(1, 4)],
            flux=[1.0, 2.0, 1.0],
            evtrt=[3.0, 6.0, 3.0],
        )
    if not second.exists():
        write_neut_root(
            second,
            [make_fsi_event(event_number=10), make_event(event_number=11, mode=27)],
            flux=[5.0, 5.0],
            evtrt=[2.0, 2.0],
        )


def pytest_configure(config):  # noqa: D401
    """Ensure fixtures exist before any tests run."""
    _ensure_standard_fixtures(FIXTURES)


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def fsi_event():
    return make_fsi_event()


@pytest.fixture
def neut_root_writer():
    return write_neut_root


@pytest.fixture
def neut_parquet_writer():
    return write_neut_parquet
