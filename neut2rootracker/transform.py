"""
NEUT particle stack -> RooTracker StdHep array.

The input stack is walked in order and each position is handled by the
state it falls in:

    NEUTRINO  (index 0)   one slot, never dropped
    TARGET    (index 1)   one or two slots, depending on the target
                          representation chosen for the run
    GENERAL   (index >=2) zero or one slot, depending on the status
                          mapping and ``skip_non_fs``

Status mapping (NEUT -> StdHep):

    -1 initial state                 -> 0 (INITIAL)
     0 alive                         -> 1 (FINAL)
     0 not alive                     -> 2 (BAD), droppable
     2 escaped, alive                -> 1 (FINAL), with a warning
     2 escaped, not alive            -> 2 (BAD), droppable
     anything else                   -> the NEUT code itself, droppable

The struck nucleon written by the neutgeom-style representation gets status
11 instead of 0 when its NEUT status is initial state, matching the GENIE
convention for the hit nucleon.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict

from .config import ConversionConfig
from .errors import MalformedEventError
from .log import TRACE
from .models import NEUT_DETERMINED_LATER, NEUT_ESCAPED, NEUT_INITIAL, NeutEvent, NeutParticle, neut_status_name
from .pdg import make_nuclear_pdg
from .record import (
    IDX_E,
    STATUS_BAD,
    STATUS_FINAL,
    STATUS_INITIAL,
    STATUS_STRUCK_NUCLEON,
    RooTrackerRecord,
)

logger = logging.getLogger(__name__)


class SlotState(enum.Enum):
    NEUTRINO = "neutrino"
    TARGET = "target"
    GENERAL = "general"


def slot_state(part_num: int) -> SlotState:
    if part_num == 0:
        return SlotState.NEUTRINO
    if part_num == 1:
        return SlotState.TARGET
    return SlotState.GENERAL


@dataclass(frozen=True)
class StatusOutcome:
    """Canonical status for one particle.

    ``good`` False means the particle is not a good final/initial state
    particle and is dropped when non-FS particles are skipped.
    """

    code: int
    good: bool
    expected: bool = True


def map_status(status: int, is_alive: bool) -> StatusOutcome:
    if status == NEUT_INITIAL:
        return StatusOutcome(STATUS_INITIAL, True)
    if status in (NEUT_DETERMINED_LATER, NEUT_ESCAPED):
        if is_alive:
            return StatusOutcome(STATUS_FINAL, True)
        return StatusOutcome(STATUS_BAD, False)
    return StatusOutcome(int(status), False, expected=False)


class TargetRepresentation(ABC):
    """How input position 1 (the struck nucleon) and the nuclear target are written."""

    name = ""

    @abstractmethod
    def write(self, transformer: "ParticleListTransformer", event: NeutEvent,
              nucleon: NeutParticle, record: RooTrackerRecord) -> None:
        ...


class NeutgeomTarget(TargetRepresentation):
    """Target and struck nucleon in two consecutive slots, as TNeutOutput does.

    The target slot holds the nuclear PDG and carries the mass number A in
    its energy component as a placeholder; its 3-momentum stays zero.
    """

    name = "neutgeom"

    def write(self, transformer, event, nucleon, record):
        slot = record.stdhep.write(make_nuclear_pdg(event.target_z, event.target_a), STATUS_INITIAL)
        record.stdhep.p4[slot, IDX_E] = event.target_a
        logger.log(
            TRACE, "Target slot %d: Z=%d A=%d PDG=%d",
            slot, event.target_z, event.target_a, int(record.stdhep.pdg[slot]),
        )
        transformer.write_general(event, 1, nucleon, record, struck_nucleon=True)


class NuWroTarget(TargetRepresentation):
    """One combined slot: nuclear target PDG with the struck nucleon 4-momentum.

    The nucleon species is then only available through the invariant mass of
    that slot or the separate StruckNucleonPDG field.
    """

    name = "nuwro"

    def write(self, transformer, event, nucleon, record):
        record.stdhep.write(
            make_nuclear_pdg(event.target_z, event.target_a),
            STATUS_INITIAL,
            transformer.scaled(nucleon),
        )


def target_representation(config: ConversionConfig) -> TargetRepresentation:
    if config.emulate_nuwro:
        return NuWroTarget()
    return NeutgeomTarget()


class ParticleListTransformer:
    """Fills the StdHep block of a record from one NEUT event.

    The input event is never modified. The target representation is fixed
    at construction.
    """

    def __init__(self, config: ConversionConfig):
        self.config = config
        self.scale = config.scale_factor
        self.skip_non_fs = config.skip_non_fs
        self.target = target_representation(config)
        self._handlers: Dict[SlotState, Callable[[NeutEvent, int, NeutParticle, RooTrackerRecord], None]] = {
            SlotState.NEUTRINO: self.write_neutrino,
            SlotState.TARGET: self.write_target,
            SlotState.GENERAL: self.write_general,
        }

    def scaled(self, part: NeutParticle) -> tuple[float, float, float, float]:
        s = self.scale
        return (part.px * s, part.py * s, part.pz * s, part.energy * s)

    def transform(self, event: NeutEvent, record: RooTrackerRecord) -> int:
        """Write the StdHep array for ``event`` into ``record``; return StdHepN."""
        if event.n_particles < 2:
            raise MalformedEventError(
                f"Event {event.event_number} has {event.n_particles} particle(s); "
                "need at least the neutrino and the struck nucleon"
            )

        record.stdhep.reset()
        record.is_bound = int(event.is_bound)
        record.struck_nucleon_pdg = int(event.struck_nucleon.pdg_id)

        for part_num, part in enumerate(event.particles):
            self._handlers[slot_state(part_num)](event, part_num, part, record)

        return record.stdhep.n

    def write_neutrino(self, event, part_num, part, record) -> None:
        outcome = self._outcome(event, part)
        record.stdhep.write(part.pdg_id, outcome.code, self.scaled(part))

    def write_target(self, event, part_num, part, record) -> None:
        self.target.write(self, event, part, record)

    def write_general(self, event: NeutEvent, part_num: int, part: NeutParticle,
                      record: RooTrackerRecord, struck_nucleon: bool = False) -> None:
        outcome = self._outcome(event, part)
        if not outcome.good and self.skip_non_fs:
            logger.debug(
                "Not saving particle %d (PDG %d, status %d:%r, alive=%s) in event %d",
                part_num, part.pdg_id, part.status, neut_status_name(part.status),
                part.is_alive, event.event_number,
            )
            return

        code = outcome.code
        if struck_nucleon and part.status == NEUT_INITIAL:
            code = STATUS_STRUCK_NUCLEON
        record.stdhep.write(part.pdg_id, code, self.scaled(part))

    def _outcome(self, event: NeutEvent, part: NeutParticle) -> StatusOutcome:
        outcome = map_status(part.status, part.is_alive)
        if part.status == NEUT_ESCAPED and part.is_alive:
            logger.warning(
                "Found NEUT status 2:%r marked as alive (PDG %d) in event %d",
                neut_status_name(part.status), part.pdg_id, event.event_number,
            )
        elif not outcome.expected:
            logger.info(
                "Found unexpected NEUT status code %d:%r (PDG %d) in event %d",
                part.status, neut_status_name(part.status), part.pdg_id, event.event_number,
            )
        return outcome
