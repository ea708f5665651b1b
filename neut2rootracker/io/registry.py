from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .reader_base import Reader
from .writer_base import Writer


@dataclass(frozen=True)
class FormatHandlers:
    reader: Callable[[], Reader]
    writer: Callable[[], Writer]


_REGISTRY: dict[str, FormatHandlers] = {}


def register(fmt: str, reader: Callable[[], Reader], writer: Callable[[], Writer]) -> None:
    _REGISTRY[fmt] = FormatHandlers(reader=reader, writer=writer)


def detect_format(filepath: str | Path) -> str:
    # Input descriptors may be comma-separated globs; the first pattern decides.
    first = str(filepath).split(",")[0].strip()
    p = Path(first)
    if not p.suffix:
        raise ValueError(f"Cannot detect format from filename: {p}")
    ext = p.suffix.lower()
    ext_map = {
        ".root": "root",
        ".parquet": "parquet",
        ".pq": "parquet",
    }
    fmt = ext_map.get(ext)
    if fmt is None:
        raise ValueError(f"Unknown file extension '{ext}' in {p}")
    return fmt


def get_reader(fmt: str) -> Reader:
    if fmt not in _REGISTRY:
        raise ValueError(f"No reader registered for format: {fmt}")
    return _REGISTRY[fmt].reader()


def get_writer(fmt: str) -> Writer:
    if fmt not in _REGISTRY:
        raise ValueError(f"No writer registered for format: {fmt}")
    return _REGISTRY[fmt].writer()
