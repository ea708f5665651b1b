"""High-level conversion/info API."""

from __future__ import annotations

import itertools
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from .assemble import EventRecordAssembler
from .config import ConversionConfig
from .errors import NoEntriesError
from .models import NeutEvent, SourceFile
from .validation import RecordValidator, ValidationReport

from .io.reader_base import Reader
from .io.registry import detect_format, get_reader, get_writer, register

# Ensure default handlers are registered
from .io.root import NeutRootReader, RooTrackerRootWriter
from .io.parquet import NeutParquetReader, RooTrackerParquetWriter

register("root", lambda: NeutRootReader(), lambda: RooTrackerRootWriter())
register("parquet", lambda: NeutParquetReader(), lambda: RooTrackerParquetWriter())

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10000


@dataclass
class ConversionSummary:
    """What one ``convert`` run did."""

    output_path: str
    input_format: str
    output_format: str
    sources: list[SourceFile] = field(default_factory=list)
    n_entries: int = 0
    n_read: int = 0
    n_written: int = 0
    n_ignored: int = 0
    validation: Optional[ValidationReport] = None

    def to_dict(self) -> dict:
        return {
            "output_path": self.output_path,
            "input_format": self.input_format,
            "output_format": self.output_format,
            "input_files": [s.path for s in self.sources],
            "n_entries": self.n_entries,
            "n_read": self.n_read,
            "n_written": self.n_written,
            "n_ignored": self.n_ignored,
            "validation": self.validation.to_dict() if self.validation is not None else None,
        }


def iter_chain(reader: Reader, sources: Iterable[SourceFile]) -> Iterator[NeutEvent]:
    """Events of all ``sources`` back to back, like a TChain."""
    for source in sources:
        yield from reader.iter_events(source)


def _open_sources(descriptor: str, input_format: Optional[str]) -> tuple[str, Reader, list[SourceFile]]:
    if input_format is None:
        input_format = detect_format(descriptor)
    reader = get_reader(input_format)
    sources = reader.sources(descriptor)
    return input_format, reader, sources


def convert(config: ConversionConfig) -> ConversionSummary:
    """Convert the NEUT files matched by ``config.input_descriptor`` to RooTracker.

    Events are streamed: one record is assembled, written and reset before
    the next input entry is read.
    """
    input_format, reader, sources = _open_sources(config.input_descriptor, config.input_format)
    output_format = config.output_format or detect_format(config.output_path)

    n_entries = sum(s.n_entries for s in sources)
    logger.info("Found %d input file(s) with %d entries", len(sources), n_entries)
    if n_entries == 0:
        raise NoEntriesError(f"\"{config.input_descriptor}\" contained 0 entries.")

    n_to_read = n_entries if config.max_events < 0 else min(config.max_events, n_entries)

    summary = ConversionSummary(
        output_path=config.output_path,
        input_format=input_format,
        output_format=output_format,
        sources=sources,
        n_entries=n_entries,
    )
    assembler = EventRecordAssembler(config)
    validator = RecordValidator() if config.validate else None

    writer = get_writer(output_format)
    with writer.open(config.output_path, config):
        events = itertools.islice(iter_chain(reader, sources), n_to_read)
        for entry_num, event in enumerate(events):
            if entry_num and not entry_num % PROGRESS_EVERY:
                logger.info("Read %d entries", entry_num)
            summary.n_read += 1

            record = assembler.assemble(event, entry_num)
            if record is None:
                continue
            if validator is not None:
                validator.check(record, event)
            writer.fill(record)
            record.reset()

    summary.n_written = writer.n_filled
    summary.n_ignored = assembler.n_ignored
    if validator is not None:
        summary.validation = validator.report

    logger.info("Wrote %d entries to %s", summary.n_written, config.output_path)
    if summary.n_ignored:
        logger.info("Ignored %d entries by interaction mode", summary.n_ignored)
    return summary


def info(descriptor: str, format: Optional[str] = None, max_events: int = -1) -> dict:
    """Summarize the NEUT input matched by ``descriptor``."""
    format, reader, sources = _open_sources(descriptor, format)

    n_events = 0
    total_particles = 0
    mode_counts: Counter = Counter()
    pdg_counts: Counter = Counter()
    status_counts: Counter = Counter()

    events: Iterable[NeutEvent] = iter_chain(reader, sources)
    if max_events >= 0:
        events = itertools.islice(events, max_events)
    for ev in events:
        n_events += 1
        total_particles += ev.n_particles
        mode_counts[ev.mode] += 1
        for p in ev.particles:
            pdg_counts[p.pdg_id] += 1
            status_counts[p.status] += 1

    from .pdg import name as pdg_name

    top_named = [(pdg_name(pid), count) for pid, count in pdg_counts.most_common(20)]

    return {
        "format": format,
        "files": [
            {
                "path": s.path,
                "n_entries": s.n_entries,
                "flux_integral": s.flux_integral,
                "event_rate_integral": s.event_rate_integral,
            }
            for s in sources
        ],
        "n_entries": sum(s.n_entries for s in sources),
        "n_events": n_events,
        "total_particles": total_particles,
        "avg_particles_per_event": total_particles / max(1, n_events),
        "mode_counts": dict(sorted(mode_counts.items())),
        "top_particles": top_named,
        "status_counts": dict(sorted(status_counts.items())),
    }
