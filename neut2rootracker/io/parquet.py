from __future__ import annotations

import json
from typing import Any, Dict, Iterator, Optional

import numpy as np

from ..models import (
    FsiParticle,
    FsiVertex,
    NeutEvent,
    NeutParticle,
    NucleonFsiStep,
    NucleonFsiVertex,
    SourceFile,
)
from ..record import BRANCH_DTYPES, GENERATOR_NAME, RooTrackerRecord
from .reader_base import Reader
from .writer_base import Writer


def _require_pyarrow():
    try:
        import pyarrow as pa  # type: ignore
        import pyarrow.parquet as pq  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("Parquet support requires 'pyarrow'. Install neut2rootracker[parquet].") from e
    return pa, pq


_META_PREFIX = "neut2rootracker."


def _md_get(md: dict[str, str], key: str, default=None):
    return md.get(f"{_META_PREFIX}{key}", md.get(key, default))


def _md_set(md: dict[str, str], key: str, value) -> None:
    md[f"{_META_PREFIX}{key}"] = str(value)


def _decode_metadata(raw: Optional[dict]) -> dict[str, str]:
    if not raw:
        return {}
    return {k.decode() if isinstance(k, bytes) else k: v.decode() if isinstance(v, bytes) else v
            for k, v in raw.items()}


def _hist_integral(md: dict[str, str], name: str) -> Optional[float]:
    """Integral of a histogram stored as a JSON list of bin contents."""
    raw = _md_get(md, name)
    if raw is None:
        return None
    try:
        contents = json.loads(raw)
    except ValueError:
        return None
    return float(sum(contents))


def _items(d: Optional[dict], key: str) -> list:
    return (d or {}).get(key) or []


def event_from_record(d: Dict[str, Any], source: Optional[SourceFile] = None) -> NeutEvent:
    """Build a ``NeutEvent`` from one event-per-row record."""
    return NeutEvent(
        event_number=int(d.get("event_number") or 0),
        mode=int(d.get("mode") or 0),
        total_xsec=float(d.get("total_xsec") or 0.0),
        crsx=float(d.get("crsx") or 0.0),
        crsy=float(d.get("crsy") or 0.0),
        crsz=float(d.get("crsz") or 0.0),
        crsphi=float(d.get("crsphi") or 0.0),
        target_z=int(d.get("target_z") or 0),
        target_a=int(d.get("target_a") or 0),
        is_bound=int(d.get("is_bound") or 0),
        particles=[
            NeutParticle(
                pdg_id=int(p.get("pdg_id", 0)),
                status=int(p.get("status", 0)),
                is_alive=bool(p.get("is_alive", False)),
                px=float(p.get("px", 0.0)),
                py=float(p.get("py", 0.0)),
                pz=float(p.get("pz", 0.0)),
                energy=float(p.get("energy", 0.0)),
            )
            for p in _items(d, "particles")
        ],
        vertices=[
            (float(v.get("x", 0.0)), float(v.get("y", 0.0)), float(v.get("z", 0.0)), float(v.get("t", 0.0)))
            for v in _items(d, "vertices")
        ],
        fsi_vertices=[FsiVertex(**v) for v in _items(d, "fsi_vertices")],
        fsi_particles=[FsiParticle(**p) for p in _items(d, "fsi_particles")],
        nucleon_fsi_vertices=[NucleonFsiVertex(**v) for v in _items(d, "nucleon_fsi_vertices")],
        nucleon_fsi_steps=[NucleonFsiStep(**s) for s in _items(d, "nucleon_fsi_steps")],
        source=source,
    )


class NeutParquetReader(Reader):
    """NEUT events stored one per row.

    Histogram bin contents travel in the schema metadata under
    ``neut2rootracker.flux_numu`` and ``neut2rootracker.evtrt_numu``.
    """

    def open_source(self, path: str) -> SourceFile:
        _, pq = _require_pyarrow()
        meta = pq.read_metadata(path)
        md = _decode_metadata(meta.metadata)
        return SourceFile(
            path=path,
            n_entries=int(meta.num_rows),
            flux_integral=_hist_integral(md, "flux_numu"),
            event_rate_integral=_hist_integral(md, "evtrt_numu"),
        )

    def iter_events(self, source: SourceFile) -> Iterator[NeutEvent]:
        _, pq = _require_pyarrow()
        pf = pq.ParquetFile(source.path)
        for batch in pf.iter_batches():
            for d in batch.to_pylist():
                yield event_from_record(d, source)


def _arrow_type(pa, name: str, shape: tuple):
    if name in ("EvtCode", "GeneratorName"):
        return pa.string()
    base = pa.from_numpy_dtype(np.dtype(BRANCH_DTYPES[name]))
    for _ in shape:
        base = pa.list_(base)
    return base


def _to_python(value):
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


class RooTrackerParquetWriter(Writer):
    """One row per record; jagged fields as lists, fixed blocks as nested lists."""

    def __init__(self, chunk_size: int = 1000):
        super().__init__()
        self.chunk_size = chunk_size
        self._writer = None
        self._schema = None
        self._rows: list[Dict[str, Any]] = []

    def _open(self, path: str) -> None:
        pa, pq = _require_pyarrow()
        template = RooTrackerRecord(self.config.capacity).snapshot(self.branches)
        # jagged branches are 1-D in the template (length 0), fixed blocks keep their shape
        fields = [pa.field(name, _arrow_type(pa, name, np.shape(template[name]))) for name in self.branches]
        md: dict[str, str] = {}
        _md_set(md, "tree_name", self.config.tree_name)
        _md_set(md, "generator_name", GENERATOR_NAME)
        _md_set(md, "capacity", self.config.capacity)
        _md_set(md, "lite_mode", int(self.config.lite_mode))
        _md_set(md, "energy_unit", self.config.energy_unit.value)
        self._schema = pa.schema(fields, metadata=md)
        self._writer = pq.ParquetWriter(path, self._schema)

    def _fill(self, values: Dict[str, Any]) -> None:
        self._rows.append({k: _to_python(v) for k, v in values.items()})
        if len(self._rows) >= self.chunk_size:
            self._flush()

    def _flush(self) -> None:
        if not self._rows:
            return
        pa, _ = _require_pyarrow()
        self._writer.write_table(pa.Table.from_pylist(self._rows, schema=self._schema))
        self._rows = []

    def close(self) -> None:
        if self._writer is None:
            return
        try:
            self._flush()
        finally:
            self._writer.close()
            self._writer = None
