"""Logging configuration helpers."""

from __future__ import annotations

import logging
from typing import Optional

from .config import LoggingConfig

# Housekeeping sweeps run on their own thread next to the control loop
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"

NETWORK_LOGGERS = ("paho", "aiohttp.access")

# Emit up to one record per binding per control cycle
CYCLE_LOGGERS = ("forgemini.telemetry.tasks",)


def parse_level(level: str) -> int:
    """Resolve a level name ("debug") or number ("10"); unknown values map to INFO."""
    value = level.strip()
    if value.isdigit():
        return int(value)
    resolved = logging.getLevelName(value.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure root logging handlers for the forgemini process.

    Parameters
    ----------
    config:
        Logging section of the configuration. ``path`` adds a file handler next
        to the console; ``log_network`` keeps MQTT and HTTP library chatter;
        ``log_tasks`` keeps per-cycle debug records of signal and tunable tasks,
        which are otherwise capped at INFO even when the root level is DEBUG.
    """

    config = config or LoggingConfig(path=None)
    root = logging.getLogger()

    logging.captureWarnings(True)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    logging.basicConfig(level=parse_level(config.level), format=LOG_FORMAT)

    if config.path:
        config.path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.path)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    network_level = logging.NOTSET if config.log_network else logging.WARNING
    for name in NETWORK_LOGGERS:
        logging.getLogger(name).setLevel(network_level)

    cycle_level = logging.NOTSET if config.log_tasks else logging.INFO
    for name in CYCLE_LOGGERS:
        logging.getLogger(name).setLevel(cycle_level)
