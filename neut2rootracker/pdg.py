"""PDG helpers.

Nuclear codes follow the 10-digit ion convention ``10LZZZAAAI``; names and
validity come from scikit-hep ``particle``.
"""

from __future__ import annotations

from typing import Optional

from particle import PDGID as _PDGID
from particle import Particle as _Particle

NEUTRINOS = frozenset({12, -12, 14, -14, 16, -16})
NUCLEUS_BASE = 1000000000


def make_nuclear_pdg(z: int, a: int) -> int:
    """PDG code of the nucleus with Z protons and mass number A.

    >>> make_nuclear_pdg(6, 12)
    1000060120
    """
    return NUCLEUS_BASE + int(z) * 10000 + int(a) * 10


def is_nucleus(pdg_id: int) -> bool:
    """True for 10-digit ion codes only; bare nucleons are not nuclei here."""
    if abs(int(pdg_id)) < NUCLEUS_BASE:
        return False
    try:
        return bool(_PDGID(pdg_id).is_nucleus)
    except Exception:
        return False


def nucleus_za(pdg_id: int) -> Optional[tuple[int, int]]:
    """(Z, A) encoded in a nuclear PDG code, None for anything else."""
    if not is_nucleus(pdg_id):
        return None
    pid = _PDGID(pdg_id)
    return int(pid.Z), int(pid.A)


def is_neutrino(pdg_id: int) -> bool:
    return pdg_id in NEUTRINOS


def is_valid_pdg_id(pdg_id: int) -> bool:
    try:
        return bool(_PDGID(pdg_id).is_valid)
    except Exception:
        return False


def name(pdg_id: int) -> str:
    try:
        return _Particle.from_pdgid(pdg_id).name
    except Exception:
        return str(pdg_id)
