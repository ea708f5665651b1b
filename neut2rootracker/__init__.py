"""neut2rootracker: NEUT vector files to the RooTracker event record format."""

from __future__ import annotations

__version__ = "0.3.0"

from .config import ConversionConfig, EnergyUnit
from .convert import ConversionSummary, convert, info
from .errors import ConversionError
from .models import NeutEvent, NeutParticle, SourceFile
from .record import RooTrackerRecord

__all__ = [
    "__version__",
    "convert",
    "info",
    "ConversionConfig",
    "ConversionError",
    "ConversionSummary",
    "EnergyUnit",
    "NeutEvent",
    "NeutParticle",
    "RooTrackerRecord",
    "SourceFile",
]
