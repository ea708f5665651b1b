"""Run configuration.

A single immutable value built once at startup (CLI or library caller) and
handed to the transformer, assembler and writers.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .errors import ConfigurationError

DEFAULT_OUTPUT = "vector.ntrac.root"
DEFAULT_TREE_NAME = "nRooTracker"
DEFAULT_CAPACITY = 100


class EnergyUnit(enum.Enum):
    """Unit of every momentum/energy component written to the output.

    NEUT works in MeV; GeV output is a plain rescaling of all four components.
    """

    MEV = "MeV"
    GEV = "GeV"

    @property
    def scale_factor(self) -> float:
        if self is EnergyUnit.GEV:
            return 1.0 / 1000
        return 1.0


def parse_mode_list(text: str) -> frozenset[int]:
    """Parse ``"1,2,27"`` into a set of interaction modes."""
    modes = set()
    for tok in text.split(","):
        tok = tok.strip()
        if not tok:
            continue
        try:
            modes.add(int(tok))
        except ValueError as e:
            raise ConfigurationError(f"Cannot parse interaction mode: {tok!r}") from e
    return frozenset(modes)


@dataclass(frozen=True)
class ConversionConfig:
    """Options for one conversion run.

    Attributes:
        input_descriptor: Glob pattern(s) of input files, comma separated.
        output_path: Destination file.
        input_format, output_format: Registry keys; detected from the
            file extension when None.
        max_events: Process at most this many input entries (-1 for all).
        verbosity: 0-4, diagnostic depth only.
        lite_mode: Write the reduced schema (no FSI history, no X4/Polz).
        energy_unit: Unit for every written momentum/energy component.
        emulate_nuwro: Represent target + struck nucleon as a single slot
            (target PDG, nucleon 4-momentum) like nuwro2rootracker.
        skip_non_fs: Drop particles whose canonical status is not good.
        save_is_bound: Add the IsBound field to the output schema.
        save_struck_nucleon_pdg: Add the StruckNucleonPDG field; implied by
            emulate_nuwro.
        ignore_modes: Interaction modes whose events are skipped entirely.
        capacity: Number of StdHep slots in the output array.
        tree_name: Output tree name.
        validate: Check every written record (see validation.py).
    """

    input_descriptor: str = ""
    output_path: str = DEFAULT_OUTPUT
    input_format: Optional[str] = None
    output_format: Optional[str] = None
    max_events: int = -1
    verbosity: int = 0
    lite_mode: bool = False
    energy_unit: EnergyUnit = EnergyUnit.MEV
    emulate_nuwro: bool = False
    skip_non_fs: bool = False
    save_is_bound: bool = False
    save_struck_nucleon_pdg: bool = False
    ignore_modes: frozenset = field(default_factory=frozenset)
    capacity: int = DEFAULT_CAPACITY
    tree_name: str = DEFAULT_TREE_NAME
    validate: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.ignore_modes, frozenset):
            object.__setattr__(self, "ignore_modes", frozenset(int(m) for m in self.ignore_modes))
        if isinstance(self.energy_unit, str):
            try:
                object.__setattr__(self, "energy_unit", EnergyUnit(self.energy_unit))
            except ValueError as e:
                raise ConfigurationError(f"Unknown energy unit: {self.energy_unit!r}") from e
        if self.capacity < 3:
            raise ConfigurationError("capacity must allow at least 3 StdHep slots")
        if not 0 <= self.verbosity <= 4:
            raise ConfigurationError("verbosity must be in 0-4")
        if self.max_events < -1:
            raise ConfigurationError("max_events must be -1 (all) or >= 0")

    @property
    def scale_factor(self) -> float:
        return self.energy_unit.scale_factor

    @property
    def writes_struck_nucleon_pdg(self) -> bool:
        return self.save_struck_nucleon_pdg or self.emulate_nuwro

    def ignores(self, mode: int) -> bool:
        return bool(self.ignore_modes) and mode in self.ignore_modes

    @classmethod
    def from_options(cls, *, ignore_modes: Iterable[int] | str = (), **kwargs) -> "ConversionConfig":
        if isinstance(ignore_modes, str):
            ignore_modes = parse_mode_list(ignore_modes)
        return cls(ignore_modes=frozenset(ignore_modes), **kwargs)
