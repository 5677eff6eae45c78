"""Verbosity-controlled logging for Planline.

Engine modules report through one shared logger with two extra levels:

- CHANGES (25): committed dates, rejected edits, row assignments (``-v 1``)
- CHECKS (15): validation decisions, skipped occurrences, throttled frames (``-v 2``)

``-v 3`` adds standard debug output; ``-v 0`` leaves errors only.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

LOGGER_NAME = "planline"

CHANGES_LEVEL = 25  # INFO < CHANGES < WARNING
CHECKS_LEVEL = 15  # DEBUG < CHECKS < INFO

logging.addLevelName(CHANGES_LEVEL, "CHANGES")
logging.addLevelName(CHECKS_LEVEL, "CHECKS")

VERBOSITY_SILENT = 0
VERBOSITY_CHANGES = 1
VERBOSITY_CHECKS = 2
VERBOSITY_DEBUG = 3

_LEVEL_FOR_VERBOSITY = {
    VERBOSITY_SILENT: logging.ERROR,
    VERBOSITY_CHANGES: CHANGES_LEVEL,
    VERBOSITY_CHECKS: CHECKS_LEVEL,
    VERBOSITY_DEBUG: logging.DEBUG,
}


class PlanlineLogger(logging.Logger):
    """Logger with ``changes()`` and ``checks()`` next to the standard methods."""

    def changes(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(CHANGES_LEVEL):
            self._log(CHANGES_LEVEL, msg, args, **kwargs)

    def checks(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(CHECKS_LEVEL):
            self._log(CHECKS_LEVEL, msg, args, **kwargs)


def get_logger() -> PlanlineLogger:
    """Return the shared planline logger.

    Modules call this at import time; output stays at ERROR until
    setup_logger() is called.
    """
    logging.setLoggerClass(PlanlineLogger)
    logger = logging.getLogger(LOGGER_NAME)
    assert isinstance(logger, PlanlineLogger)
    return logger


def level_for_verbosity(verbosity: int) -> int:
    """Map a CLI verbosity (0-3) to a logging level; anything above 3 is debug."""
    if verbosity > VERBOSITY_DEBUG:
        return logging.DEBUG
    return _LEVEL_FOR_VERBOSITY.get(verbosity, logging.ERROR)


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """Configure the planline logger; safe to call again to reconfigure.

    Args:
        verbosity: 0=errors only, 1=changes, 2=checks, 3=debug
        stream: Destination for messages (sys.stderr when omitted)
    """
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(level_for_verbosity(verbosity))

    # Bare messages: the level is implied by the verbosity the user asked for
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def reset_logger() -> None:
    """Drop all handlers and return to errors-only (used between tests)."""
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.ERROR)


def changes_enabled() -> bool:
    return get_logger().isEnabledFor(CHANGES_LEVEL)


def checks_enabled() -> bool:
    return get_logger().isEnabledFor(CHECKS_LEVEL)
