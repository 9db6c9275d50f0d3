"""forgemini: telemetry bus sync for robot subsystems."""

from __future__ import annotations

from .core import Color, ValueKind
from .telemetry import ChannelCache, IOSubsystem, SmartChooser, Tunable, signal

__version__ = "0.3.0"

__all__ = [
    "ChannelCache",
    "Color",
    "IOSubsystem",
    "SmartChooser",
    "Tunable",
    "ValueKind",
    "__version__",
    "signal",
]
