"""Logging setup shared by the CLI and the orchestrator."""

from __future__ import annotations

import logging
from typing import Final

LOGGER_NAMESPACE: Final[str] = "specflow_vcs"
DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# HTTP transport loggers that log every request at DEBUG.
_TRANSPORT_LOGGERS: Final[tuple[str, ...]] = ("urllib3", "requests")


def configure_logging(level: str = "WARNING", fmt: str | None = None) -> None:
    """Configure console logging for specflow-vcs.

    Args:
        level: Level name such as "INFO" or "DEBUG". Unknown names map to INFO.
        fmt: Optional format string. Defaults to a pipe-separated format.

    Transport loggers stay at WARNING unless ``level`` is DEBUG, so that
    per-request connection noise only shows up when explicitly asked for.
    """

    numeric = normalize_level(level)
    logging.basicConfig(level=numeric, format=fmt or DEFAULT_LOG_FORMAT)
    logging.getLogger(LOGGER_NAMESPACE).setLevel(numeric)
    transport_level = logging.DEBUG if numeric <= logging.DEBUG else logging.WARNING
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the ``specflow_vcs`` namespace."""

    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def normalize_level(level: str | int) -> int:
    """Map a level name (or number) to its numeric value, defaulting to INFO."""

    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO
