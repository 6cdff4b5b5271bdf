"""Logging configuration for Perennial.

All modules obtain loggers through ``get_logger(__name__)`` so that output is
grouped under the ``perennial`` namespace and can be tuned in one place.
"""

from __future__ import annotations

import logging
import os
import sys

ROOT_LOGGER_NAME = "perennial"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO level
_NOISY_LOGGERS = ("httpx", "httpcore")


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``perennial`` namespace.

    Args:
        name: Module name, usually ``__name__``

    Returns:
        Logger instance
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def _resolve_level(verbose: bool, quiet: bool) -> int:
    override = os.environ.get("PERENNIAL_LOG_LEVEL")
    if override:
        level = logging.getLevelName(override.upper())
        if isinstance(level, int):
            return level
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure the ``perennial`` logger hierarchy.

    Safe to call more than once: existing handlers are replaced rather than
    stacked.

    Args:
        verbose: Enable DEBUG output
        quiet: Only emit warnings and errors
    """
    level = _resolve_level(verbose, quiet)
    root = logging.getLogger(ROOT_LOGGER_NAME)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.DEBUG if verbose else logging.WARNING)
