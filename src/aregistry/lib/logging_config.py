"""Logging configuration for the registry runtime."""

import logging
import sys

ROOT_LOGGER_NAME = "aregistry"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure the package root logger.

    Safe to call more than once; only the level changes on repeat calls.

    Args:
        verbose: Enable DEBUG output (generated artifacts, resolved servers)
        quiet: Only emit WARNING and above
    """
    global _configured

    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)

    if not _configured:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.propagate = False
        _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the package root logger."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
