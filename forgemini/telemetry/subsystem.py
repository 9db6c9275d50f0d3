"""Base class for subsystems that exchange telemetry with the bus."""

from __future__ import annotations

import abc
import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..core import ValueKind
from .bindings import (
    KindSpec,
    SignalBinding,
    TunableBinding,
    declared_signals,
    declared_tunables,
)
from .channels import ChannelCache
from .compiler import TaskCompiler
from .tasks import SignalTask, TunableTask

LOGGER = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    STEADY = "steady"


class IOSubsystem(abc.ABC):
    """Subsystem whose signals and tunables are synced with the bus every cycle.

    Subclasses implement :meth:`periodic_logic` and call :meth:`periodic` once
    per robot cycle. Each call runs, in order:

    1. every signal task, in declaration order (values out to the bus);
    2. every tunable task, in declaration order (values in from the bus);
    3. :meth:`periodic_logic`.

    Bindings are compiled on the first :meth:`periodic` call rather than in
    ``__init__`` so that subclass constructors have finished assigning their
    fields before tunable values are read.

    Args:
        table_name: Bus table that holds this subsystem's entries.
        channels: Shared channel cache.
    """

    def __init__(self, table_name: str, channels: ChannelCache) -> None:
        self.table_name = table_name
        self.channels = channels
        self._state = SchedulerState.UNINITIALIZED
        self._init_lock = threading.Lock()
        self._extra_signals: List[SignalBinding] = []
        self._extra_tunables: List[TunableBinding] = []
        self._signal_tasks: List[SignalTask] = []
        self._tunable_tasks: List[TunableTask] = []
        self._skipped: List[str] = []
        self._closed = False

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------
    def add_signal(
        self,
        key: str,
        accessor: Callable[[], Any],
        *,
        kind: KindSpec = None,
        on_change: bool = False,
        slow_scale: int = 1,
    ) -> None:
        """Register a signal from the constructor.

        Registered signals follow the class-level ``@signal`` declarations.
        """
        self._ensure_declarable(key)
        self._extra_signals.append(
            SignalBinding(
                key=key,
                accessor=accessor,
                kind=kind,
                on_change=on_change,
                slow_scale=slow_scale,
            )
        )

    def add_tunable(self, key: str, attribute: str, *, kind: KindSpec = None) -> None:
        """Register an instance attribute as a tunable."""
        self._ensure_declarable(key)
        self._extra_tunables.append(
            TunableBinding(key=key, attribute=attribute, kind=kind)
        )

    def _ensure_declarable(self, key: str) -> None:
        if self._state is not SchedulerState.UNINITIALIZED:
            raise RuntimeError(
                f"Cannot declare '{key}' on {self.table_name} after the first cycle"
            )

    def signal_bindings(self) -> List[SignalBinding]:
        return declared_signals(self) + list(self._extra_signals)

    def tunable_bindings(self) -> List[TunableBinding]:
        return declared_tunables(self) + list(self._extra_tunables)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def signal_tasks(self) -> List[SignalTask]:
        return list(self._signal_tasks)

    @property
    def tunable_tasks(self) -> List[TunableTask]:
        return list(self._tunable_tasks)

    def periodic(self) -> None:
        if self._state is SchedulerState.UNINITIALIZED:
            self._initialize()

        for task in self._signal_tasks:
            task()

        for task in self._tunable_tasks:
            task()

        self.periodic_logic()

    def _initialize(self) -> None:
        with self._init_lock:
            if self._state is not SchedulerState.UNINITIALIZED:
                return
            if not self._closed:
                compiler = TaskCompiler(self.channels, self.table_name)
                compiled = compiler.compile(
                    self, self.signal_bindings(), self.tunable_bindings()
                )
                self._signal_tasks = compiled.signals
                self._tunable_tasks = compiled.tunables
                self._skipped = compiled.skipped
            self._state = SchedulerState.STEADY

    @abc.abstractmethod
    def periodic_logic(self) -> None:
        """Per-cycle subsystem logic; runs after bus values were exchanged."""

    # ------------------------------------------------------------------
    # Direct entries
    # ------------------------------------------------------------------
    def set_entry(self, key: str, value: Any, kind: Optional[ValueKind] = None) -> None:
        """Publish ``value`` under this subsystem's table."""
        self.channels.put(self.table_name, key, value, kind)

    def get_entry(
        self, key: str, default: Any, kind: Optional[ValueKind] = None
    ) -> Any:
        """Read an entry of this subsystem's table, or ``default``."""
        return self.channels.get(self.table_name, key, default, kind)

    def status(self) -> Dict[str, Any]:
        return {
            "table": self.table_name,
            "state": self._state.value,
            "signals": len(self._signal_tasks),
            "tunables": len(self._tunable_tasks),
            "skipped": list(self._skipped),
            "closed": self._closed,
        }

    def close(self) -> None:
        """Drop compiled tasks and release every bus handle of this table."""
        with self._init_lock:
            self._closed = True
            self._signal_tasks = []
            self._tunable_tasks = []
        removed = self.channels.close_scope(self.table_name)
        LOGGER.info("Closed %s (%d bus handles released)", self.table_name, removed)
