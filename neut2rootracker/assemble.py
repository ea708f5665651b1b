"""Event record assembly: metadata, weights and FSI history around the StdHep block."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .config import ConversionConfig
from .errors import CapacityExceededError
from .log import TRACE
from .models import NeutEvent, SourceFile
from .record import (
    N_FSI_PART_MAX,
    N_FSI_VERT_MAX,
    N_NUCLEON_FSI_STEP_MAX,
    N_NUCLEON_FSI_VERT_MAX,
    N_VCWORK_MAX,
    RooTrackerRecord,
    output_branches,
)
from .transform import ParticleListTransformer

logger = logging.getLogger(__name__)


@dataclass
class FileWeights:
    """Per-input-file weights, recomputed only when the input file changes.

    EvtWght     = integral(evtrt_numu) / (integral(flux_numu) * entries in file)
    EvtHistWght = integral(evtrt_numu) / entries in file

    Both are zero when either histogram is missing from the file.
    """

    source_key: Optional[str] = None
    evt_wght: float = 0.0
    evt_hist_wght: float = 0.0
    n_entries_in_file: float = 0.0

    def update(self, source: Optional[SourceFile], entry_num: int = 0) -> bool:
        """Recompute if ``source`` is a different file; return True if it was."""
        key = source.path if source is not None else None
        if key == self.source_key:
            return False
        self.source_key = key
        if source is None:
            self.evt_wght = self.evt_hist_wght = self.n_entries_in_file = 0.0
            return True

        self.n_entries_in_file = float(source.n_entries)
        if not source.has_weight_histograms or source.n_entries <= 0:
            self.evt_wght = 0.0
            self.evt_hist_wght = 0.0
        else:
            self.evt_hist_wght = source.event_rate_integral / self.n_entries_in_file
            if source.flux_integral:
                self.evt_wght = source.event_rate_integral / (source.flux_integral * self.n_entries_in_file)
            else:
                self.evt_wght = 0.0
        logger.info(
            "Opened new file: %s on entry %d (%d entries in this file), EvtWght: %g",
            source.path, entry_num, source.n_entries, self.evt_wght,
        )
        return True


def _check_capacity(what: str, n: int, capacity: int) -> None:
    if n > capacity:
        raise CapacityExceededError(f"{what}: {n} entries exceed the output capacity of {capacity}")


class EventRecordAssembler:
    """Builds one RooTracker record per accepted NEUT event.

    The assembler owns the single record of the run. ``assemble`` returns it
    filled, or None when the event's interaction mode is ignored; the caller
    must hand the record to a writer before the next call.
    """

    def __init__(self, config: ConversionConfig):
        self.config = config
        self.record = RooTrackerRecord(config.capacity)
        self.transformer = ParticleListTransformer(config)
        self.weights = FileWeights()
        self.n_assembled = 0
        self.n_ignored = 0

    def assemble(self, event: NeutEvent, entry_num: int = 0) -> Optional[RooTrackerRecord]:
        self.weights.update(event.source, entry_num)

        if self.config.ignores(event.mode):
            self.n_ignored += 1
            return None

        rec = self.record
        rec.reset()
        cfg = self.config

        rec.evt_code = str(event.mode)
        rec.evt_num = int(event.event_number)

        if not cfg.lite_mode:
            rec.evt_xsec = float(event.total_xsec)
            rec.evt_wght = self.weights.evt_wght
            rec.evt_hist_wght = self.weights.evt_hist_wght
            rec.n_entries_in_file = self.weights.n_entries_in_file
            rec.ne_crsx = float(event.crsx)
            rec.ne_crsy = float(event.crsy)
            rec.ne_crsz = float(event.crsz)
            rec.ne_crsphi = float(event.crsphi)
            self._fill_vertex(event, entry_num)

        if logger.isEnabledFor(TRACE):
            logger.log(TRACE, "Input entry %d: %r", entry_num, event)

        self.transformer.transform(event, rec)
        self._dump(event)

        if not cfg.lite_mode:
            self._fill_vcwork(event)
            self._fill_pion_fsi(event)
            self._fill_nucleon_fsi(event)

        self.n_assembled += 1
        return rec

    def _fill_vertex(self, event: NeutEvent, entry_num: int) -> None:
        if len(event.vertices) != 1:
            logger.warning(
                "Vertex entry %d had %d entries, expected 1.", entry_num, len(event.vertices)
            )
            self.record.evt_vtx[:] = 0.0
            return
        self.record.evt_vtx[:] = event.vertices[0]

    def _fill_vcwork(self, event: NeutEvent) -> None:
        rec, s = self.record, self.config.scale_factor
        parts = event.particles
        _check_capacity("NEUT VCWORK particles", len(parts), N_VCWORK_MAX)
        rec.ne_nvc = len(parts)
        for i, part in enumerate(parts):
            rec.ne_pvc[i] = (part.px * s, part.py * s, part.pz * s)
            rec.ne_ipvc[i] = part.pdg_id
            rec.ne_iorgvc[i] = 0
            rec.ne_iflgvc[i] = part.status
            rec.ne_icrnvc[i] = 1 if part.is_alive else 0

    def _fill_pion_fsi(self, event: NeutEvent) -> None:
        rec, s = self.record, self.config.scale_factor
        _check_capacity("Pion FSI vertices", len(event.fsi_vertices), N_FSI_VERT_MAX)
        _check_capacity("Pion FSI particles", len(event.fsi_particles), N_FSI_PART_MAX)

        rec.ne_nvert = len(event.fsi_vertices)
        for i, vert in enumerate(event.fsi_vertices):
            rec.ne_posvert[i] = (vert.x, vert.y, vert.z)
            rec.ne_iflgvert[i] = vert.vert_id

        rec.ne_nvcvert = len(event.fsi_particles)
        for i, part in enumerate(event.fsi_particles):
            rec.ne_dirvert[i] = (part.dir_x, part.dir_y, part.dir_z)
            rec.ne_abspvert[i] = part.mom_lab * s
            rec.ne_abstpvert[i] = part.mom_nuc * s
            rec.ne_ipvert[i] = part.pdg_id
            rec.ne_iverti[i] = part.vert_start
            rec.ne_ivertf[i] = part.vert_end

    def _fill_nucleon_fsi(self, event: NeutEvent) -> None:
        rec = self.record
        _check_capacity("Nucleon FSI vertices", len(event.nucleon_fsi_vertices), N_NUCLEON_FSI_VERT_MAX)
        _check_capacity("Nucleon FSI steps", len(event.nucleon_fsi_steps), N_NUCLEON_FSI_STEP_MAX)

        rec.nf_nvert = len(event.nucleon_fsi_vertices)
        for i, vert in enumerate(event.nucleon_fsi_vertices):
            rec.nf_iflag[i] = vert.flag
            rec.nf_pos[i] = (vert.x, vert.y, vert.z)
            rec.nf_p4[i] = (vert.px, vert.py, vert.pz, vert.energy)
            rec.nf_firststep[i] = vert.first_step

        rec.nf_nstep = len(event.nucleon_fsi_steps)
        for i, step in enumerate(event.nucleon_fsi_steps):
            rec.nf_ecms2[i] = step.ecms2
            rec.nf_prob[i] = step.prob

    def _dump(self, event: NeutEvent) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        rec = self.record
        lines = [f"(Interaction Mode: {event.mode}) EvtNum: {rec.evt_num}"]
        for it, (pdg_id, status, p4) in enumerate(rec.stdhep.entries()):
            label = "Particle:" if it > 0 else "Incoming Neutrino:"
            lines.append(
                f"{label} {it}/{rec.n} (VectNPart: {event.n_particles})"
                f"\n\tStdHepPdg: {pdg_id}\n\tStdHepStatus: {status}\n\tStdHepP4: {list(p4)}"
            )
        logger.debug("\n".join(lines))


def assemble_all(events: Sequence[NeutEvent], config: ConversionConfig) -> list[dict]:
    """Assemble a batch of events into record snapshots (schema per ``config``)."""
    names = output_branches(config)
    assembler = EventRecordAssembler(config)
    out = []
    for i, ev in enumerate(events):
        rec = assembler.assemble(ev, i)
        if rec is not None:
            out.append(rec.snapshot(names))
    return out
