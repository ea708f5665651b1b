"""
Input data model for neut2rootracker.

These classes mirror what a NEUT vector/vertex entry carries. Readers build
them; the transformer and assembler only read them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# NEUT native status codes (NeutPart::fStatus)
NEUT_INITIAL = -1
NEUT_DETERMINED_LATER = 0
NEUT_ESCAPED = 2

NEUT_STATUS_NAMES = (
    "DETERMINED LATER PROCEDURE",
    "DECAY TO OTHER PARTICLE",
    "ESCAPE FROM DETECTOR",
    "ABSORPTION",
    "CHARGE EXCHANGE",
    "STOP AND NOT CONSIDER IN M.C.",
    "E.M. SHOWER",
    "HADRON PRODUCTION",
    "QUASI-ELASTIC SCATTER",
    "FORWARD (ELASTIC-LIKE) SCATTER",
)


def neut_status_name(status: int) -> str:
    if status == NEUT_INITIAL:
        return "INITIAL STATE"
    if 0 <= status < len(NEUT_STATUS_NAMES):
        return NEUT_STATUS_NAMES[status]
    return "UNKNOWN"


@dataclass
class NeutParticle:
    """One entry of the NEUT particle stack.

    Attributes:
        pdg_id: PDG Monte Carlo particle ID.
        status: NEUT status code (-1 initial state, 0 "determined later",
            2 escaped detector, ... see NEUT_STATUS_NAMES).
        is_alive: NEUT's own "still alive" flag, independent of status.
        px, py, pz, energy: Four-momentum in MeV.
    """

    pdg_id: int
    status: int
    is_alive: bool
    px: float
    py: float
    pz: float
    energy: float

    @property
    def p4(self) -> tuple[float, float, float, float]:
        return (self.px, self.py, self.pz, self.energy)


@dataclass
class FsiVertex:
    """Pion FSI history vertex: position inside the nucleus (fm) and interaction flag."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    vert_id: int = 0


@dataclass
class FsiParticle:
    """Pion FSI history intermediate particle.

    Attributes:
        dir_x, dir_y, dir_z: Direction of the particle.
        mom_lab: Absolute momentum in the lab frame (MeV/c).
        mom_nuc: Absolute momentum in the nucleon rest frame (MeV/c).
        pdg_id: PDG code.
        vert_start, vert_end: Indices into the FSI vertex list.
    """

    dir_x: float = 0.0
    dir_y: float = 0.0
    dir_z: float = 0.0
    mom_lab: float = 0.0
    mom_nuc: float = 0.0
    pdg_id: int = 0
    vert_start: int = 0
    vert_end: int = 0


@dataclass
class NucleonFsiVertex:
    """Nucleon FSI tracking point; ``flag`` is the 4-digit BNTP code."""

    flag: int = 0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    px: float = 0.0
    py: float = 0.0
    pz: float = 0.0
    energy: float = 0.0
    first_step: int = 0


@dataclass
class NucleonFsiStep:
    ecms2: float = 0.0
    prob: float = 0.0


@dataclass
class SourceFile:
    """One input file.

    Attributes:
        path: File path as matched by the input descriptor.
        n_entries: Number of entries in *this* file.
        flux_integral: Integral of the ``flux_numu`` histogram, None if absent.
        event_rate_integral: Integral of ``evtrt_numu``, None if absent.
    """

    path: str
    n_entries: int = 0
    flux_integral: Optional[float] = None
    event_rate_integral: Optional[float] = None

    @property
    def has_weight_histograms(self) -> bool:
        return self.flux_integral is not None and self.event_rate_integral is not None


@dataclass
class NeutEvent:
    """A single NEUT interaction.

    ``particles[0]`` is the incoming neutrino and ``particles[1]`` the
    struck nucleon before FSI; the rest follow in NEUT emission order.
    ``vertices`` holds the (x, y, z, t) entries of the vertex record; a
    well-formed event has exactly one.
    """

    event_number: int = 0
    mode: int = 0
    total_xsec: float = 0.0
    crsx: float = 0.0
    crsy: float = 0.0
    crsz: float = 0.0
    crsphi: float = 0.0
    target_z: int = 0
    target_a: int = 0
    is_bound: int = 0
    particles: list[NeutParticle] = field(default_factory=list)
    vertices: list[tuple[float, float, float, float]] = field(default_factory=list)
    fsi_vertices: list[FsiVertex] = field(default_factory=list)
    fsi_particles: list[FsiParticle] = field(default_factory=list)
    nucleon_fsi_vertices: list[NucleonFsiVertex] = field(default_factory=list)
    nucleon_fsi_steps: list[NucleonFsiStep] = field(default_factory=list)
    source: Optional[SourceFile] = None

    @property
    def n_particles(self) -> int:
        return len(self.particles)

    @property
    def struck_nucleon(self) -> NeutParticle:
        return self.particles[1]
