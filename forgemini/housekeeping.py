"""System resource housekeeping.

Keeps the robot process healthy between matches by:

1. reclaiming memory (``gc.collect``) while the robot is disabled and free
   memory is low;
2. rotating robot data logs so the disk never fills up;
3. switching off optional live telemetry that is not needed in competition.
"""

from __future__ import annotations

import gc
import logging
import math
import threading
from pathlib import Path
from typing import Callable, List, Optional

import psutil

from .config import HousekeepingConfig

LOGGER = logging.getLogger(__name__)


def free_memory_ratio() -> float:
    memory = psutil.virtual_memory()
    if not memory.total:
        return 1.0
    return memory.available / memory.total


class Optimizer:
    """Idle-time memory reclamation and log rotation.

    Call :meth:`init` once at startup and :meth:`update` every robot cycle.
    """

    def __init__(
        self,
        config: Optional[HousekeepingConfig] = None,
        *,
        memory_probe: Callable[[], float] = free_memory_ratio,
        collect: Callable[[], int] = gc.collect,
        voltage_provider: Optional[Callable[[], float]] = None,
        live_window_hook: Optional[Callable[[], None]] = None,
    ) -> None:
        self.config = config or HousekeepingConfig()
        self._memory_probe = memory_probe
        self._collect = collect
        self._voltage_provider = voltage_provider
        self._live_window_hook = live_window_hook
        self._loop_counter = 0
        self._sweeper: Optional[threading.Thread] = None

    @property
    def loop_counter(self) -> int:
        return self._loop_counter

    def init(self) -> Optional[threading.Thread]:
        """Disable optional telemetry and sweep old logs in the background."""
        if self.config.disable_live_window and self._live_window_hook is not None:
            try:
                self._live_window_hook()
            except Exception:
                LOGGER.warning("Failed to disable live window telemetry", exc_info=True)
            else:
                LOGGER.info("Live window telemetry disabled")

        self._sweeper = threading.Thread(
            target=self.clean_old_logs, name="forgemini-log-sweep", daemon=True
        )
        self._sweeper.start()
        return self._sweeper

    def update(self, disabled: bool) -> bool:
        """Count idle cycles and collect garbage when memory runs low.

        Returns True when a collection ran during this call.
        """
        if not disabled:
            self._loop_counter = 0
            return False

        self._loop_counter += 1
        if self._loop_counter <= self.config.gc_check_cycles:
            return False
        self._loop_counter = 0

        try:
            ratio = self._memory_probe()
        except Exception:
            LOGGER.debug("Memory probe failed", exc_info=True)
            return False

        if ratio >= self.config.memory_threshold:
            return False

        LOGGER.info("Critical memory (%d%% free). Running GC...", int(ratio * 100))
        self._collect()
        return True

    def clean_old_logs(self) -> List[Path]:
        """Keep only the newest ``max_log_files`` logs; return the deleted paths."""
        deleted: List[Path] = []
        try:
            log_dir = self.config.log_dir
            if not log_dir.is_dir():
                return deleted

            files = [path for path in log_dir.glob(self.config.log_pattern) if path.is_file()]
            excess = len(files) - self.config.max_log_files
            if excess <= 0:
                return deleted

            files.sort(key=lambda path: path.stat().st_mtime)
            for path in files[:excess]:
                try:
                    path.unlink()
                except OSError:
                    LOGGER.warning("Unable to delete log %s", path, exc_info=True)
                    continue
                deleted.append(path)
                LOGGER.info("Log deleted to free up space: %s", path.name)
        except Exception as exc:
            LOGGER.error("Error cleaning logs: %s", exc)
        return deleted

    def get_voltage(self) -> float:
        """Current battery voltage, or NaN when no provider is configured."""
        if self._voltage_provider is None:
            return math.nan
        return float(self._voltage_provider())
