"""Conversion errors.

Every fatal condition has its own exception type and exit code so that batch
scripts can tell "no input" apart from "bad output path" or "no entries".
"""

from __future__ import annotations


class ConversionError(ValueError):
    """Base class for conditions that abort a conversion run."""

    exit_code = 1


class ConfigurationError(ConversionError):
    exit_code = 1


class NoInputFilesError(ConversionError):
    exit_code = 2


class NoEntriesError(ConversionError):
    exit_code = 4


class OutputFileError(ConversionError):
    exit_code = 8


class MalformedEventError(ConversionError):
    """Input event has fewer than two particles (no neutrino + nucleon pair)."""

    exit_code = 16


class CapacityExceededError(ConversionError):
    """More entries than the fixed-size output array can hold."""

    exit_code = 32
