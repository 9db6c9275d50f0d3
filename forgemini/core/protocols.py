"""Protocol definitions for telemetry bus transports."""

from __future__ import annotations

from typing import Any, Protocol

from .models import ValueKind


class Publisher(Protocol):
    """Typed write handle for a single channel path."""

    def set(self, value: Any) -> None:
        """Push a value; never blocks."""
        ...

    def close(self) -> None:
        ...


class Subscriber(Protocol):
    """Typed read handle for a single channel path."""

    def get(self) -> Any:
        """Return the last received value, or the subscription default."""
        ...

    def close(self) -> None:
        ...


class BusTransport(Protocol):
    """Minimal contract for a key-value telemetry bus."""

    def exists(self, path: str) -> bool:
        """Return True when the bus already holds a value for ``path``."""
        ...

    def publish(self, path: str, kind: ValueKind) -> Publisher:
        ...

    def subscribe(self, path: str, kind: ValueKind, default: Any) -> Subscriber:
        ...
