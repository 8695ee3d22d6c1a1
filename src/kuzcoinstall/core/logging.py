"""Logging setup and operator-facing progress output."""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

# Prefix of progress lines printed during an install run
STATUS_PREFIX = ">>>"


def configure_logging(*, debug: bool = False, verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logging level based on CLI flags.

    Precedence:
    - quiet → ERROR
    - debug → DEBUG (also enabled by DEBUG_MODE=true)
    - verbose → INFO
    - default → WARNING, so that skipped GPU steps still surface
    """

    if quiet:
        level = logging.ERROR
    elif debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-level logger."""

    return logging.getLogger(name if name is not None else __name__)


def status(message: str, stream: Optional[TextIO] = None) -> None:
    """Print a progress line for the operator (``>>> message``)."""
    print(f"{STATUS_PREFIX} {message}", file=stream or sys.stdout, flush=True)
