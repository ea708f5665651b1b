"""
Consistency checks on assembled RooTracker records.

Provides checks for:
- StdHepN within the array capacity
- Incoming neutrino in slot 0
- Nuclear target slot matching the event's (Z, A)
- Valid PDG IDs outside the target slot
- Energy positivity
- Known canonical status codes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from . import pdg as pdg_module
from .models import NeutEvent
from .record import (
    IDX_E,
    STATUS_BAD,
    STATUS_FINAL,
    STATUS_INITIAL,
    STATUS_STRUCK_NUCLEON,
    RooTrackerRecord,
)

KNOWN_STATUSES = frozenset({STATUS_INITIAL, STATUS_FINAL, STATUS_BAD, STATUS_STRUCK_NUCLEON})
TARGET_SLOT = 1


@dataclass
class ValidationIssue:
    """A single validation issue found in a record."""

    level: str  # "error", "warning", "info"
    event_number: int
    slot: Optional[int]  # None for record-level issues
    message: str

    def __str__(self) -> str:
        loc = f"event {self.event_number}"
        if self.slot is not None:
            loc += f", slot {self.slot}"
        return f"[{self.level.upper()}] {loc}: {self.message}"

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "event_number": self.event_number,
            "slot": self.slot,
            "message": self.message,
        }


@dataclass
class ValidationReport:
    """Summary of all validation issues."""

    issues: list[ValidationIssue] = field(default_factory=list)
    n_records: int = 0

    @property
    def n_errors(self) -> int:
        return sum(1 for i in self.issues if i.level == "error")

    @property
    def n_warnings(self) -> int:
        return sum(1 for i in self.issues if i.level == "warning")

    @property
    def is_valid(self) -> bool:
        return self.n_errors == 0

    def __str__(self) -> str:
        lines = [
            f"Validation: {self.n_records} records, {self.n_errors} errors, "
            f"{self.n_warnings} warnings, {len(self.issues)} total issues"
        ]
        for issue in self.issues[:50]:  # Cap output
            lines.append(f"  {issue}")
        if len(self.issues) > 50:
            lines.append(f"  ... and {len(self.issues) - 50} more")
        return "\n".join(lines)

    def summary(self) -> str:
        """One-line summary."""
        return (
            f"{self.n_errors} errors, {self.n_warnings} warnings "
            f"across {len(self.issues)} issues in {self.n_records} records"
        )

    def to_dict(self) -> dict:
        return {
            "n_records": self.n_records,
            "n_errors": self.n_errors,
            "n_warnings": self.n_warnings,
            "n_issues": len(self.issues),
            "is_valid": self.is_valid,
            "issues": [i.to_dict() for i in self.issues],
        }


def validate_record(
    record: RooTrackerRecord,
    event: NeutEvent,
    *,
    check_neutrino: bool = True,
    check_target: bool = True,
    check_pdg: bool = True,
    check_energy: bool = True,
    check_status: bool = True,
) -> list[ValidationIssue]:
    """Validate one assembled record against the event it was built from.

    Args:
        record: The filled record, before it is reset.
        event: The NEUT event the record was assembled from.
        check_neutrino: Slot 0 must hold a neutrino.
        check_target: Slot 1 must hold the nucleus of the event's (Z, A).
        check_pdg: Other slots must carry known PDG IDs.
        check_energy: No written slot may have negative energy.
        check_status: Flag canonical statuses outside {0, 1, 2, 11}.

    Returns:
        List of validation issues found.
    """
    issues: list[ValidationIssue] = []
    evt = int(record.evt_num)
    n = record.n

    if n > record.capacity:
        issues.append(ValidationIssue(
            "error", evt, None, f"StdHepN={n} exceeds capacity {record.capacity}"
        ))
        return issues
    if n == 0:
        issues.append(ValidationIssue("error", evt, None, "Record has no StdHep entries"))
        return issues

    pdg = record.stdhep.pdg
    status = record.stdhep.status
    p4 = record.stdhep.p4

    if check_neutrino and not pdg_module.is_neutrino(int(pdg[0])):
        issues.append(ValidationIssue(
            "warning", evt, 0, f"Slot 0 is not a neutrino: PDG {int(pdg[0])}"
        ))

    if check_target:
        if n <= TARGET_SLOT:
            issues.append(ValidationIssue("error", evt, None, "Record has no target slot"))
        else:
            target = int(pdg[TARGET_SLOT])
            za = pdg_module.nucleus_za(target)
            if za is None:
                issues.append(ValidationIssue(
                    "error", evt, TARGET_SLOT, f"Target slot is not a nucleus: PDG {target}"
                ))
            elif za != (event.target_z, event.target_a):
                issues.append(ValidationIssue(
                    "error", evt, TARGET_SLOT,
                    f"Target (Z, A)={za} does not match event ({event.target_z}, {event.target_a})"
                ))

    if check_pdg:
        for i in range(n):
            if i == TARGET_SLOT and check_target:
                continue
            if not pdg_module.is_valid_pdg_id(int(pdg[i])):
                issues.append(ValidationIssue(
                    "warning", evt, i, f"Unknown/invalid PDG ID: {int(pdg[i])}"
                ))

    if check_energy:
        for i in range(n):
            if p4[i, IDX_E] < 0:
                issues.append(ValidationIssue(
                    "error", evt, i, f"Negative energy: {p4[i, IDX_E]:.6e}"
                ))

    if check_status:
        for i in range(n):
            if int(status[i]) not in KNOWN_STATUSES:
                issues.append(ValidationIssue(
                    "info", evt, i, f"Pass-through status code {int(status[i])}"
                ))

    return issues


class RecordValidator:
    """Accumulates issues over the records of one run."""

    def __init__(self) -> None:
        self.report = ValidationReport()

    def check(self, record: RooTrackerRecord, event: NeutEvent) -> list[ValidationIssue]:
        issues = validate_record(record, event)
        self.report.n_records += 1
        self.report.issues.extend(issues)
        return issues
