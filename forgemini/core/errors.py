"""Exception hierarchy for forgemini."""

from __future__ import annotations


class ForgeMiniError(RuntimeError):
    """Base class for all forgemini errors."""


class BindingConfigurationError(ForgeMiniError):
    """Raised when a signal or tunable declaration cannot be compiled."""


class TransportError(ForgeMiniError):
    """Raised when the telemetry bus rejects an operation."""
