from __future__ import annotations

import glob
from abc import ABC, abstractmethod
from typing import Iterator

from ..errors import NoInputFilesError
from ..models import NeutEvent, SourceFile


def expand_descriptor(descriptor: str) -> list[str]:
    """Resolve an input descriptor the way ``TChain::Add`` does.

    The descriptor is one or more comma-separated glob patterns. Matches are
    sorted per pattern and duplicates are dropped, keeping first occurrence.
    """
    paths: list[str] = []
    seen = set()
    for pattern in descriptor.split(","):
        pattern = pattern.strip()
        if not pattern:
            continue
        for path in sorted(glob.glob(pattern)):
            if path not in seen:
                seen.add(path)
                paths.append(path)
    if not paths:
        raise NoInputFilesError(f"\"{descriptor}\" matched 0 input files.")
    return paths


class Reader(ABC):
    """Source of NEUT events, one input file at a time."""

    @abstractmethod
    def open_source(self, path: str) -> SourceFile:
        """Entry count and weight histogram integrals of one file."""
        ...

    @abstractmethod
    def iter_events(self, source: SourceFile) -> Iterator[NeutEvent]:
        """Events of ``source`` in file order, each with ``event.source`` set."""
        ...

    def sources(self, descriptor: str) -> list[SourceFile]:
        return [self.open_source(p) for p in expand_descriptor(descriptor)]
