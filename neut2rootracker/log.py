"""Package logger and verbosity handling."""

from __future__ import annotations

import logging
import sys

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

logger = logging.getLogger("neut2rootracker")

_VERBOSITY_LEVELS = {
    -1: logging.ERROR,
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
    3: TRACE,
    4: TRACE,
}


def level_for(verbosity: int) -> int:
    verbosity = max(-1, min(4, int(verbosity)))
    return _VERBOSITY_LEVELS[verbosity]


def configure_logging(verbosity: int = 0, stream=None) -> logging.Logger:
    """Attach a stderr handler to the package logger at the level for ``verbosity``.

    Calling this again only updates the level; handlers are not duplicated.
    """
    if not any(getattr(h, "_neut2rootracker", False) for h in logger.handlers):
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        handler._neut2rootracker = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    logger.setLevel(level_for(verbosity))
    return logger
