"""ROOT I/O through uproot.

Input is a flattened NEUT vector tree (``neuttree``): one entry per
interaction, scalar branches for the event-level fields and jagged branches
for the particle stack, the vertex record and the FSI histories. The weight
histograms ``flux_numu`` and ``evtrt_numu`` sit next to the tree.

Output is the ``nRooTracker`` tree. Jagged branches are grouped so that each
group shares the counter of the RooTracker format (``StdHepN``, ``NEnvc``,
...); fixed capacity blocks are written as fixed-shape branches.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional

import awkward as ak
import numpy as np
import uproot

from ..models import (
    FsiParticle,
    FsiVertex,
    NeutEvent,
    NeutParticle,
    NucleonFsiStep,
    NucleonFsiVertex,
    SourceFile,
)
from ..record import BRANCH_DTYPES, JAGGED_GROUPS, RooTrackerRecord, counter_of
from .reader_base import Reader
from .writer_base import Writer

logger = logging.getLogger(__name__)

NEUT_TREE = "neuttree"
FLUX_HIST = "flux_numu"
EVENT_RATE_HIST = "evtrt_numu"

SCALAR_BRANCHES = (
    "EventNo", "Mode", "Totcrs", "Crsx", "Crsy", "Crsz", "Crsphi",
    "TargetZ", "TargetA", "Ibound",
)
PARTICLE_BRANCHES = ("PartPID", "PartStatus", "PartIsAlive", "PartPx", "PartPy", "PartPz", "PartE")
VERTEX_BRANCHES = ("VtxX", "VtxY", "VtxZ", "VtxT")
FSI_VERTEX_BRANCHES = ("FsiVertX", "FsiVertY", "FsiVertZ", "FsiVertID")
FSI_PARTICLE_BRANCHES = (
    "FsiPartDirX", "FsiPartDirY", "FsiPartDirZ", "FsiPartMomLab", "FsiPartMomNuc",
    "FsiPartPID", "FsiPartVertStart", "FsiPartVertEnd",
)
NUCLEON_FSI_VERTEX_BRANCHES = (
    "NFVertFlag", "NFVertX", "NFVertY", "NFVertZ",
    "NFVertPx", "NFVertPy", "NFVertPz", "NFVertE", "NFVertFirstStep",
)
NUCLEON_FSI_STEP_BRANCHES = ("NFStepEcms2", "NFStepProb")

REQUIRED_BRANCHES = ("EventNo", "Mode", "TargetZ", "TargetA") + PARTICLE_BRANCHES
INPUT_BRANCHES = (
    SCALAR_BRANCHES + PARTICLE_BRANCHES + VERTEX_BRANCHES + FSI_VERTEX_BRANCHES
    + FSI_PARTICLE_BRANCHES + NUCLEON_FSI_VERTEX_BRANCHES + NUCLEON_FSI_STEP_BRANCHES
)

# Output group name -> counter branch. uproot names a group's counter and
# members through the callbacks passed to ``mktree``.
GROUP_COUNTERS = {
    "StdHep": "StdHepN",
    "NEvc": "NEnvc",
    "NEvert": "NEnvert",
    "NEvcvert": "NEnvcvert",
    "NFvert": "NFnvert",
    "NFstep": "NFnstep",
}
COUNTER_GROUPS = {v: k for k, v in GROUP_COUNTERS.items()}

# uproot cannot write string branches
ROOT_SKIPPED_BRANCHES = ("GeneratorName",)


def _hist_integral(f, name: str) -> Optional[float]:
    if name not in f:
        return None
    return float(np.sum(f[name].values()))


def _column(row: Dict[str, Any], name: str) -> list:
    return row.get(name) or []


def event_from_row(row: Dict[str, Any], source: Optional[SourceFile] = None) -> NeutEvent:
    """Build a ``NeutEvent`` from one ``neuttree`` entry (as a plain dict)."""
    particles = [
        NeutParticle(
            pdg_id=int(pid), status=int(st), is_alive=bool(alive),
            px=float(px), py=float(py), pz=float(pz), energy=float(e),
        )
        for pid, st, alive, px, py, pz, e in zip(*(_column(row, b) for b in PARTICLE_BRANCHES))
    ]
    vertices = [
        (float(x), float(y), float(z), float(t))
        for x, y, z, t in zip(*(_column(row, b) for b in VERTEX_BRANCHES))
    ]
    fsi_vertices = [
        FsiVertex(float(x), float(y), float(z), int(vid))
        for x, y, z, vid in zip(*(_column(row, b) for b in FSI_VERTEX_BRANCHES))
    ]
    fsi_particles = [
        FsiParticle(float(dx), float(dy), float(dz), float(lab), float(nuc), int(pid), int(vs), int(ve))
        for dx, dy, dz, lab, nuc, pid, vs, ve in zip(*(_column(row, b) for b in FSI_PARTICLE_BRANCHES))
    ]
    nucleon_fsi_vertices = [
        NucleonFsiVertex(int(flag), float(x), float(y), float(z), float(px), float(py), float(pz), float(e), int(fs))
        for flag, x, y, z, px, py, pz, e, fs in zip(*(_column(row, b) for b in NUCLEON_FSI_VERTEX_BRANCHES))
    ]
    nucleon_fsi_steps = [
        NucleonFsiStep(float(ecms2), float(prob))
        for ecms2, prob in zip(*(_column(row, b) for b in NUCLEON_FSI_STEP_BRANCHES))
    ]
    return NeutEvent(
        event_number=int(row.get("EventNo", 0)),
        mode=int(row.get("Mode", 0)),
        total_xsec=float(row.get("Totcrs", 0.0)),
        crsx=float(row.get("Crsx", 0.0)),
        crsy=float(row.get("Crsy", 0.0)),
        crsz=float(row.get("Crsz", 0.0)),
        crsphi=float(row.get("Crsphi", 0.0)),
        target_z=int(row.get("TargetZ", 0)),
        target_a=int(row.get("TargetA", 0)),
        is_bound=int(row.get("Ibound", 0)),
        particles=particles,
        vertices=vertices,
        fsi_vertices=fsi_vertices,
        fsi_particles=fsi_particles,
        nucleon_fsi_vertices=nucleon_fsi_vertices,
        nucleon_fsi_steps=nucleon_fsi_steps,
        source=source,
    )


class NeutRootReader(Reader):
    def __init__(self, tree_name: str = NEUT_TREE, step_size: int = 10000):
        self.tree_name = tree_name
        self.step_size = step_size

    def _tree(self, f, path: str):
        if self.tree_name not in f:
            raise ValueError(f"{path}: no '{self.tree_name}' tree")
        tree = f[self.tree_name]
        missing = [b for b in REQUIRED_BRANCHES if b not in tree]
        if missing:
            raise ValueError(f"{path}: tree '{self.tree_name}' lacks required branches: {', '.join(missing)}")
        return tree

    def open_source(self, path: str) -> SourceFile:
        with uproot.open(path) as f:
            tree = self._tree(f, path)
            return SourceFile(
                path=path,
                n_entries=int(tree.num_entries),
                flux_integral=_hist_integral(f, FLUX_HIST),
                event_rate_integral=_hist_integral(f, EVENT_RATE_HIST),
            )

    def iter_events(self, source: SourceFile) -> Iterator[NeutEvent]:
        with uproot.open(source.path) as f:
            tree = self._tree(f, source.path)
            present = [b for b in INPUT_BRANCHES if b in tree]
            for batch in tree.iterate(present, step_size=self.step_size, library="ak"):
                for row in ak.to_list(batch):
                    yield event_from_row(row, source)


class RooTrackerRootWriter(Writer):
    """Buffers records and writes them to ``nRooTracker`` in chunks.

    uproot cannot write string branches, so ``EvtCode`` is stored as an
    int32 holding the NEUT interaction mode and ``GeneratorName`` is not
    written. Use the Parquet writer to keep ``EvtCode`` as a string.
    """

    def __init__(self, chunk_size: int = 1000):
        super().__init__()
        self.chunk_size = chunk_size
        self._file = None
        self._tree = None
        self._rows: list[Dict[str, Any]] = []
        self._shapes: Dict[str, tuple] = {}

    def _open(self, path: str) -> None:
        self.branches = [b for b in self.branches if b not in ROOT_SKIPPED_BRANCHES]
        template = RooTrackerRecord(self.config.capacity).snapshot(self.branches)
        self._shapes = {k: np.shape(v) for k, v in template.items()}
        self._file = uproot.recreate(path)
        empty = self._columns([])
        types = {}
        for name, arr in empty.items():
            if isinstance(arr, ak.Array):
                types[name] = arr.type
            else:
                types[name] = np.dtype((arr.dtype, arr.shape[1:]))
        self._tree = self._file.mktree(
            self.config.tree_name,
            types,
            title="NEUT RooTracker",
            counter_name=lambda counted: GROUP_COUNTERS[counted],
            field_name=lambda outer, inner: inner,
        )
        logger.debug("Created tree %s in %s with %d branches", self.config.tree_name, path, len(self.branches))

    def _fill(self, values: Dict[str, Any]) -> None:
        self._rows.append(values)
        if len(self._rows) >= self.chunk_size:
            self._flush()

    def _flush(self) -> None:
        if not self._rows:
            return
        self._tree.extend(self._columns(self._rows))
        self._rows = []

    def _columns(self, rows: list[Dict[str, Any]]) -> Dict[str, Any]:
        selected = set(self.branches)
        n = len(rows)
        out: Dict[str, Any] = {}
        for name in self.branches:
            if name in JAGGED_GROUPS:
                counts = np.asarray([row[name] for row in rows], dtype=np.int64)
                fields = {}
                for member in JAGGED_GROUPS[name]:
                    if member not in selected:
                        continue
                    dtype = BRANCH_DTYPES[member]
                    if n:
                        flat = np.concatenate([np.asarray(row[member], dtype=dtype) for row in rows])
                    else:
                        flat = np.zeros(0, dtype=dtype)
                    fields[member] = ak.unflatten(flat, counts)
                out[COUNTER_GROUPS[name]] = ak.zip(fields)
            elif counter_of(name) is not None:
                continue
            elif name == "EvtCode":
                out[name] = np.asarray([int(row[name] or 0) for row in rows], dtype=np.int32)
            else:
                shape = (n,) + self._shapes[name]
                out[name] = np.asarray([row[name] for row in rows], dtype=BRANCH_DTYPES[name]).reshape(shape)
        return out

    def close(self) -> None:
        if self._file is None:
            return
        try:
            self._flush()
        finally:
            self._file.close()
            self._file = None
            self._tree = None
