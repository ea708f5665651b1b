from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict

from ..config import ConversionConfig
from ..errors import OutputFileError
from ..record import RooTrackerRecord, output_branches


class Writer(ABC):
    """Sink for RooTracker records.

    Used as a context manager: ``open`` creates the destination, ``fill``
    copies one record out, ``close`` finalizes the file. ``fill`` never keeps
    a reference into the record's storage, so the caller may reset it right
    after.
    """

    def __init__(self) -> None:
        self.config = ConversionConfig()
        self.branches: list[str] = []
        self.n_filled = 0

    def open(self, path: str, config: ConversionConfig) -> "Writer":
        self.config = config
        self.branches = output_branches(config)
        try:
            self._open(path)
        except OSError as e:
            raise OutputFileError(f"Could not create output file {path}: {e}") from e
        return self

    def fill(self, record: RooTrackerRecord) -> None:
        self._fill(record.snapshot(self.branches))
        self.n_filled += 1

    @abstractmethod
    def _open(self, path: str) -> None:
        ...

    @abstractmethod
    def _fill(self, values: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def __enter__(self) -> "Writer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
