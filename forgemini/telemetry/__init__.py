"""Signal/tunable synchronization with the telemetry bus."""

from __future__ import annotations

from .bindings import (
    SignalBinding,
    Tunable,
    TunableBinding,
    signal,
)
from .channels import ChannelCache, UnavailablePublisher, UnavailableSubscriber
from .chooser import SmartChooser
from .compiler import CompiledTasks, TaskCompiler
from .subsystem import IOSubsystem, SchedulerState
from .tasks import FilterState, SignalTask, TunableTask, advance, reconcile, sync, throttle

__all__ = [
    "ChannelCache",
    "CompiledTasks",
    "FilterState",
    "IOSubsystem",
    "SchedulerState",
    "SignalBinding",
    "SignalTask",
    "SmartChooser",
    "TaskCompiler",
    "Tunable",
    "TunableBinding",
    "TunableTask",
    "UnavailablePublisher",
    "UnavailableSubscriber",
    "advance",
    "reconcile",
    "signal",
    "sync",
    "throttle",
]
