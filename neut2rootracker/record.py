"""
RooTracker output record.

``RooTrackerRecord`` is allocated once per run, reset before each event,
filled by the assembler and snapshotted by a writer. All array storage is
preallocated at the fixed capacities of the NEUT RooTracker format.

The branch layout (which names exist, their element types, which counter a
jagged branch hangs off) lives here as data so that the selection policy in
transform.py never has to know about the output schema.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import numpy as np

from .errors import CapacityExceededError

# Fixed capacities of the NEUT RooTracker format
N_STDHEP_MAX = 100
N_VCWORK_MAX = 100
N_FSI_VERT_MAX = 100
N_FSI_PART_MAX = 300
N_NUCLEON_FSI_VERT_MAX = 200
N_NUCLEON_FSI_STEP_MAX = 2000

IDX_PX, IDX_PY, IDX_PZ, IDX_E = 0, 1, 2, 3

GENERATOR_NAME = "NEUT"

# Canonical StdHep status codes
STATUS_INITIAL = 0
STATUS_FINAL = 1
STATUS_BAD = 2
STATUS_STRUCK_NUCLEON = 11

# counter branch -> branches whose length it gives
JAGGED_GROUPS: Dict[str, tuple] = {
    "StdHepN": ("StdHepPdg", "StdHepStatus", "StdHepFd", "StdHepLd", "StdHepFm", "StdHepLm"),
    "NEnvc": ("NEipvc", "NEiorgvc", "NEiflgvc", "NEicrnvc"),
    "NEnvert": ("NEiflgvert",),
    "NEnvcvert": ("NEabspvert", "NEabstpvert", "NEipvert", "NEiverti", "NEivertf"),
    "NFnvert": ("NFiflag", "NFx", "NFy", "NFz", "NFpx", "NFpy", "NFpz", "NFe", "NFfirststep"),
    "NFnstep": ("NFecms2", "NFProb"),
}

LITE_BRANCHES = (
    "EvtCode",
    "EvtNum",
    "StdHepN",
    "StdHepPdg",
    "StdHepStatus",
    "StdHepP4",
)

FULL_ONLY_BRANCHES = (
    "EvtXSec",
    "EvtDXSec",
    "EvtWght",
    "EvtHistWght",
    "NEntriesInFile",
    "EvtProb",
    "EvtVtx",
    "StdHepX4",
    "StdHepPolz",
    "StdHepFd",
    "StdHepLd",
    "StdHepFm",
    "StdHepLm",
    "NEnvc",
    "NEipvc",
    "NEpvc",
    "NEiorgvc",
    "NEiflgvc",
    "NEicrnvc",
    "NEcrsx",
    "NEcrsy",
    "NEcrsz",
    "NEcrsphi",
    "NEnvert",
    "NEposvert",
    "NEiflgvert",
    "NEnvcvert",
    "NEdirvert",
    "NEabspvert",
    "NEabstpvert",
    "NEipvert",
    "NEiverti",
    "NEivertf",
    "NFnvert",
    "NFiflag",
    "NFx",
    "NFy",
    "NFz",
    "NFpx",
    "NFpy",
    "NFpz",
    "NFe",
    "NFfirststep",
    "NFnstep",
    "NFecms2",
    "NFProb",
    "GeneratorName",
)

BRANCH_DTYPES: Dict[str, Any] = {
    "EvtNum": np.int32,
    "EvtXSec": np.float64,
    "EvtDXSec": np.float64,
    "EvtWght": np.float64,
    "EvtHistWght": np.float64,
    "NEntriesInFile": np.float64,
    "EvtProb": np.float64,
    "EvtVtx": np.float64,
    "StdHepN": np.int32,
    "StdHepPdg": np.int32,
    "StdHepStatus": np.int32,
    "StdHepX4": np.float64,
    "StdHepP4": np.float64,
    "StdHepPolz": np.float64,
    "StdHepFd": np.int32,
    "StdHepLd": np.int32,
    "StdHepFm": np.int32,
    "StdHepLm": np.int32,
    "IsBound": np.int32,
    "StruckNucleonPDG": np.int32,
    "NEnvc": np.int32,
    "NEipvc": np.int32,
    "NEpvc": np.float32,
    "NEiorgvc": np.int32,
    "NEiflgvc": np.int32,
    "NEicrnvc": np.int32,
    "NEcrsx": np.float32,
    "NEcrsy": np.float32,
    "NEcrsz": np.float32,
    "NEcrsphi": np.float32,
    "NEnvert": np.int32,
    "NEposvert": np.float32,
    "NEiflgvert": np.int32,
    "NEnvcvert": np.int32,
    "NEdirvert": np.float32,
    "NEabspvert": np.float32,
    "NEabstpvert": np.float32,
    "NEipvert": np.int32,
    "NEiverti": np.int32,
    "NEivertf": np.int32,
    "NFnvert": np.int32,
    "NFiflag": np.int32,
    "NFx": np.float32,
    "NFy": np.float32,
    "NFz": np.float32,
    "NFpx": np.float32,
    "NFpy": np.float32,
    "NFpz": np.float32,
    "NFe": np.float32,
    "NFfirststep": np.int32,
    "NFnstep": np.int32,
    "NFecms2": np.float32,
    "NFProb": np.float32,
}


def branch_names(*, lite_mode: bool = False, save_is_bound: bool = False, save_struck_nucleon_pdg: bool = False) -> list[str]:
    """Names of the fields present in the output schema, in branch order."""
    names = list(LITE_BRANCHES)
    if save_is_bound:
        names.append("IsBound")
    if save_struck_nucleon_pdg:
        names.append("StruckNucleonPDG")
    if not lite_mode:
        names.extend(FULL_ONLY_BRANCHES)
    return names


def counter_of(branch: str) -> Optional[str]:
    for counter, members in JAGGED_GROUPS.items():
        if branch in members:
            return counter
    return None


class StdHepArray:
    """Fixed-capacity StdHep particle array written left to right.

    ``n`` is the write cursor; slots ``[0, n)`` are the written ones and
    ``len(array) == n`` always.
    """

    def __init__(self, capacity: int = N_STDHEP_MAX):
        self.capacity = int(capacity)
        self.pdg = np.zeros(self.capacity, dtype=np.int32)
        self.status = np.zeros(self.capacity, dtype=np.int32)
        self.p4 = np.zeros((self.capacity, 4), dtype=np.float64)
        self.n = 0

    def reset(self) -> None:
        self.pdg[:] = 0
        self.status[:] = 0
        self.p4[:] = 0.0
        self.n = 0

    def __len__(self) -> int:
        return self.n

    def write(self, pdg_id: int, status: int, p4: Optional[Sequence[float]] = None) -> int:
        """Fill the slot under the cursor and advance. Returns the slot index.

        When ``p4`` is None the momentum slot keeps its reset value.
        """
        if self.n >= self.capacity:
            raise CapacityExceededError(
                f"StdHep array is full ({self.capacity} slots); the event has more "
                "particles than the output format supports"
            )
        slot = self.n
        self.pdg[slot] = pdg_id
        self.status[slot] = status
        if p4 is not None:
            self.p4[slot, :] = p4
        self.n += 1
        return slot

    def entries(self) -> list[tuple[int, int, tuple[float, float, float, float]]]:
        return [
            (int(self.pdg[i]), int(self.status[i]), tuple(float(x) for x in self.p4[i]))
            for i in range(self.n)
        ]


class RooTrackerRecord:
    """One RooTracker event in its preallocated storage."""

    def __init__(self, capacity: int = N_STDHEP_MAX):
        self.capacity = int(capacity)
        self.stdhep = StdHepArray(self.capacity)
        self.x4 = np.zeros((self.capacity, 4), dtype=np.float64)
        self.polz = np.zeros((self.capacity, 3), dtype=np.float64)
        self.first_daughter = np.zeros(self.capacity, dtype=np.int32)
        self.last_daughter = np.zeros(self.capacity, dtype=np.int32)
        self.first_mother = np.zeros(self.capacity, dtype=np.int32)
        self.last_mother = np.zeros(self.capacity, dtype=np.int32)

        self.ne_ipvc = np.zeros(N_VCWORK_MAX, dtype=np.int32)
        self.ne_pvc = np.zeros((N_VCWORK_MAX, 3), dtype=np.float32)
        self.ne_iorgvc = np.zeros(N_VCWORK_MAX, dtype=np.int32)
        self.ne_iflgvc = np.zeros(N_VCWORK_MAX, dtype=np.int32)
        self.ne_icrnvc = np.zeros(N_VCWORK_MAX, dtype=np.int32)

        self.ne_posvert = np.zeros((N_FSI_VERT_MAX, 3), dtype=np.float32)
        self.ne_iflgvert = np.zeros(N_FSI_VERT_MAX, dtype=np.int32)
        self.ne_dirvert = np.zeros((N_FSI_PART_MAX, 3), dtype=np.float32)
        self.ne_abspvert = np.zeros(N_FSI_PART_MAX, dtype=np.float32)
        self.ne_abstpvert = np.zeros(N_FSI_PART_MAX, dtype=np.float32)
        self.ne_ipvert = np.zeros(N_FSI_PART_MAX, dtype=np.int32)
        self.ne_iverti = np.zeros(N_FSI_PART_MAX, dtype=np.int32)
        self.ne_ivertf = np.zeros(N_FSI_PART_MAX, dtype=np.int32)

        self.nf_iflag = np.zeros(N_NUCLEON_FSI_VERT_MAX, dtype=np.int32)
        self.nf_pos = np.zeros((N_NUCLEON_FSI_VERT_MAX, 3), dtype=np.float32)
        self.nf_p4 = np.zeros((N_NUCLEON_FSI_VERT_MAX, 4), dtype=np.float32)
        self.nf_firststep = np.zeros(N_NUCLEON_FSI_VERT_MAX, dtype=np.int32)
        self.nf_ecms2 = np.zeros(N_NUCLEON_FSI_STEP_MAX, dtype=np.float32)
        self.nf_prob = np.zeros(N_NUCLEON_FSI_STEP_MAX, dtype=np.float32)

        self.evt_vtx = np.zeros(4, dtype=np.float64)
        self.reset()

    def reset(self) -> None:
        """Return every field to its zero state (``GeneratorName`` back to NEUT)."""
        self.evt_code = ""
        self.evt_num = 0
        self.evt_xsec = 0.0
        self.evt_dxsec = 0.0
        self.evt_wght = 0.0
        self.evt_hist_wght = 0.0
        self.n_entries_in_file = 0.0
        self.evt_prob = 0.0
        self.evt_vtx[:] = 0.0

        self.stdhep.reset()
        for arr in (self.x4, self.polz, self.first_daughter, self.last_daughter,
                    self.first_mother, self.last_mother):
            arr[...] = 0

        self.is_bound = 0
        self.struck_nucleon_pdg = 0

        self.ne_nvc = 0
        self.ne_crsx = 0.0
        self.ne_crsy = 0.0
        self.ne_crsz = 0.0
        self.ne_crsphi = 0.0
        self.ne_nvert = 0
        self.ne_nvcvert = 0
        self.nf_nvert = 0
        self.nf_nstep = 0
        for arr in (self.ne_ipvc, self.ne_pvc, self.ne_iorgvc, self.ne_iflgvc, self.ne_icrnvc,
                    self.ne_posvert, self.ne_iflgvert, self.ne_dirvert, self.ne_abspvert,
                    self.ne_abstpvert, self.ne_ipvert, self.ne_iverti, self.ne_ivertf,
                    self.nf_iflag, self.nf_pos, self.nf_p4, self.nf_firststep,
                    self.nf_ecms2, self.nf_prob):
            arr[...] = 0

        self.generator_name = GENERATOR_NAME

    @property
    def n(self) -> int:
        return self.stdhep.n

    def _values(self) -> Dict[str, Any]:
        n = self.stdhep.n
        nvc, nvert, nvcvert = self.ne_nvc, self.ne_nvert, self.ne_nvcvert
        nfv, nfs = self.nf_nvert, self.nf_nstep
        return {
            "EvtCode": self.evt_code,
            "EvtNum": self.evt_num,
            "EvtXSec": self.evt_xsec,
            "EvtDXSec": self.evt_dxsec,
            "EvtWght": self.evt_wght,
            "EvtHistWght": self.evt_hist_wght,
            "NEntriesInFile": self.n_entries_in_file,
            "EvtProb": self.evt_prob,
            "EvtVtx": self.evt_vtx.copy(),
            "StdHepN": n,
            "StdHepPdg": self.stdhep.pdg[:n].copy(),
            "StdHepStatus": self.stdhep.status[:n].copy(),
            "StdHepX4": self.x4.copy(),
            "StdHepP4": self.stdhep.p4.copy(),
            "StdHepPolz": self.polz.copy(),
            "StdHepFd": self.first_daughter[:n].copy(),
            "StdHepLd": self.last_daughter[:n].copy(),
            "StdHepFm": self.first_mother[:n].copy(),
            "StdHepLm": self.last_mother[:n].copy(),
            "IsBound": self.is_bound,
            "StruckNucleonPDG": self.struck_nucleon_pdg,
            "NEnvc": nvc,
            "NEipvc": self.ne_ipvc[:nvc].copy(),
            "NEpvc": self.ne_pvc.copy(),
            "NEiorgvc": self.ne_iorgvc[:nvc].copy(),
            "NEiflgvc": self.ne_iflgvc[:nvc].copy(),
            "NEicrnvc": self.ne_icrnvc[:nvc].copy(),
            "NEcrsx": self.ne_crsx,
            "NEcrsy": self.ne_crsy,
            "NEcrsz": self.ne_crsz,
            "NEcrsphi": self.ne_crsphi,
            "NEnvert": nvert,
            "NEposvert": self.ne_posvert.copy(),
            "NEiflgvert": self.ne_iflgvert[:nvert].copy(),
            "NEnvcvert": nvcvert,
            "NEdirvert": self.ne_dirvert.copy(),
            "NEabspvert": self.ne_abspvert[:nvcvert].copy(),
            "NEabstpvert": self.ne_abstpvert[:nvcvert].copy(),
            "NEipvert": self.ne_ipvert[:nvcvert].copy(),
            "NEiverti": self.ne_iverti[:nvcvert].copy(),
            "NEivertf": self.ne_ivertf[:nvcvert].copy(),
            "NFnvert": nfv,
            "NFiflag": self.nf_iflag[:nfv].copy(),
            "NFx": self.nf_pos[:nfv, 0].copy(),
            "NFy": self.nf_pos[:nfv, 1].copy(),
            "NFz": self.nf_pos[:nfv, 2].copy(),
            "NFpx": self.nf_p4[:nfv, 0].copy(),
            "NFpy": self.nf_p4[:nfv, 1].copy(),
            "NFpz": self.nf_p4[:nfv, 2].copy(),
            "NFe": self.nf_p4[:nfv, 3].copy(),
            "NFfirststep": self.nf_firststep[:nfv].copy(),
            "NFnstep": nfs,
            "NFecms2": self.nf_ecms2[:nfs].copy(),
            "NFProb": self.nf_prob[:nfs].copy(),
            "GeneratorName": self.generator_name,
        }

    def snapshot(self, names: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        """Copy the record out as ``{branch name: value}``.

        Jagged branches are trimmed to their counter; fixed-capacity blocks
        are copied whole. The copy shares no storage with the record.
        """
        values = self._values()
        if names is None:
            names = branch_names(save_is_bound=True, save_struck_nucleon_pdg=True)
        return {name: values[name] for name in names}


def output_branches(config) -> list[str]:
    """Output schema for a ``ConversionConfig``."""
    return branch_names(
        lite_mode=config.lite_mode,
        save_is_bound=config.save_is_bound,
        save_struck_nucleon_pdg=config.writes_struck_nucleon_pdg,
    )
