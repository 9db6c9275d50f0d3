"""In-process telemetry bus used for offline runs and tests."""

from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Optional, Tuple

from ..core import TransportError, ValueKind, coerce_value


class MemoryPublisher:
    def __init__(self, bus: "MemoryBus", path: str, kind: ValueKind) -> None:
        self.bus = bus
        self.path = path
        self.kind = kind
        self.closed = False

    def set(self, value: Any) -> None:
        if self.closed:
            raise TransportError(f"Publisher for '{self.path}' is closed")
        self.bus._store_value(self.path, coerce_value(self.kind, value), sent=True)

    def close(self) -> None:
        self.closed = True


class MemorySubscriber:
    def __init__(
        self, bus: "MemoryBus", path: str, kind: ValueKind, default: Any
    ) -> None:
        self.bus = bus
        self.path = path
        self.kind = kind
        self.default = default
        self.closed = False

    def get(self) -> Any:
        return self.bus.value(self.path, self.default)

    def close(self) -> None:
        self.closed = True


class MemoryBus:
    """Thread-safe key-value bus keeping the latest value per path.

    ``sent`` records every value pushed through a publisher handle, in order,
    which makes send counting straightforward in tests. Values written with
    :meth:`put` model an external writer such as a dashboard and are not
    recorded there.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: Dict[str, Any] = {}
        self.sent: List[Tuple[str, Any]] = []
        self.publishers: List[MemoryPublisher] = []
        self.subscribers: List[MemorySubscriber] = []

    # BusTransport -----------------------------------------------------
    def exists(self, path: str) -> bool:
        with self._lock:
            return path in self._values

    def publish(self, path: str, kind: ValueKind) -> MemoryPublisher:
        publisher = MemoryPublisher(self, path, kind)
        with self._lock:
            self.publishers.append(publisher)
        return publisher

    def subscribe(self, path: str, kind: ValueKind, default: Any) -> MemorySubscriber:
        subscriber = MemorySubscriber(self, path, kind, default)
        with self._lock:
            self.subscribers.append(subscriber)
        return subscriber

    # Helpers ----------------------------------------------------------
    def put(self, path: str, value: Any) -> None:
        """Write a value as an external party would."""
        self._store_value(path, value, sent=False)

    def value(self, path: str, default: Optional[Any] = None) -> Any:
        with self._lock:
            if path not in self._values:
                return default
            return copy.deepcopy(self._values[path])

    def sends(self, path: str) -> List[Any]:
        with self._lock:
            return [value for sent_path, value in self.sent if sent_path == path]

    def _store_value(self, path: str, value: Any, *, sent: bool) -> None:
        stored = copy.deepcopy(value)
        with self._lock:
            self._values[path] = stored
            if sent:
                self.sent.append((path, stored))
