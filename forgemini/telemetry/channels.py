"""Cached publish/subscribe handles for telemetry bus channels.

Creating a bus handle is comparatively expensive, so every ``table/key`` path
gets exactly one publisher and one subscriber for the lifetime of the cache.
Handles are created on first use and reused afterwards; :meth:`close_scope`
releases every handle below a table when its owner goes away.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from ..core import BusTransport, ValueKind, infer_kind, make_path
from ..core.errors import BindingConfigurationError
from ..constants import PATH_SEPARATOR

LOGGER = logging.getLogger(__name__)


class UnavailablePublisher:
    """Placeholder cached when the bus refused to create a publisher."""

    def __init__(self, path: str) -> None:
        self.path = path

    def set(self, value: Any) -> None:
        return None

    def close(self) -> None:
        return None


class UnavailableSubscriber:
    """Placeholder cached when the bus refused to create a subscriber."""

    def __init__(self, path: str, default: Any) -> None:
        self.path = path
        self.default = default

    def get(self) -> Any:
        return self.default

    def close(self) -> None:
        return None


class ChannelCache:
    """Process-wide map from channel path to live bus handles.

    Lookups take a lock-free fast path; creation happens under a lock with a
    second lookup, so the transport factory runs at most once per path and
    every caller receives the stored handle.

    A factory failure caches a degraded handle: sends are dropped and reads
    return the subscription default. The path stays degraded until its scope
    is closed.
    """

    def __init__(self, transport: BusTransport) -> None:
        self._transport = transport
        self._lock = threading.Lock()
        self._publishers: Dict[str, Any] = {}
        self._subscribers: Dict[str, Any] = {}

    @property
    def transport(self) -> BusTransport:
        return self._transport

    # ------------------------------------------------------------------
    # Handle lookup
    # ------------------------------------------------------------------
    def publisher(self, table: str, key: str, kind: ValueKind):
        path = make_path(table, key)
        return self._get_or_create(
            self._publishers,
            path,
            lambda: self._transport.publish(path, kind),
            lambda: UnavailablePublisher(path),
        )

    def subscriber(self, table: str, key: str, kind: ValueKind, default: Any):
        path = make_path(table, key)
        return self._get_or_create(
            self._subscribers,
            path,
            lambda: self._transport.subscribe(path, kind, default),
            lambda: UnavailableSubscriber(path, default),
        )

    def exists(self, table: str, key: str) -> bool:
        path = make_path(table, key)
        try:
            return bool(self._transport.exists(path))
        except Exception:
            LOGGER.warning("Unable to query bus entry %s", path, exc_info=True)
            return False

    def _get_or_create(
        self,
        handles: Dict[str, Any],
        path: str,
        factory: Callable[[], Any],
        fallback: Callable[[], Any],
    ):
        handle = handles.get(path)
        if handle is not None:
            return handle

        with self._lock:
            handle = handles.get(path)
            if handle is not None:
                return handle

            try:
                handle = factory()
            except Exception:
                LOGGER.warning(
                    "Bus handle for %s unavailable; entry degraded", path, exc_info=True
                )
                handle = fallback()
            handles[path] = handle
            return handle

    # ------------------------------------------------------------------
    # Typed put/get
    # ------------------------------------------------------------------
    def put(
        self, table: str, key: str, value: Any, kind: Optional[ValueKind] = None
    ) -> None:
        """Publish ``value`` under ``table/key``.

        The kind is inferred from the value when not given. Raises
        :class:`BindingConfigurationError` for values the bus cannot carry.
        """
        resolved = kind or infer_kind(value)
        if resolved is None:
            raise BindingConfigurationError(
                f"Unsupported value type {type(value).__name__} for "
                f"{make_path(table, key)}"
            )
        self.publisher(table, key, resolved).set(value)

    def get(
        self, table: str, key: str, default: Any, kind: Optional[ValueKind] = None
    ) -> Any:
        resolved = kind or infer_kind(default)
        if resolved is None:
            raise BindingConfigurationError(
                f"Unsupported default type {type(default).__name__} for "
                f"{make_path(table, key)}"
            )
        return self.subscriber(table, key, resolved, default).get()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def close_scope(self, table: str) -> int:
        """Release and forget every handle below ``table``.

        Individual release failures are logged and skipped. Returns the number
        of handles removed.
        """
        prefix = table + PATH_SEPARATOR
        removed = 0
        with self._lock:
            for handles in (self._publishers, self._subscribers):
                for path in [path for path in handles if path.startswith(prefix)]:
                    handle = handles.pop(path)
                    removed += 1
                    try:
                        handle.close()
                    except Exception:
                        LOGGER.debug("Failed to close bus handle %s", path, exc_info=True)

        if removed:
            LOGGER.debug("Closed %d bus handles under %s", removed, table)
        return removed

    def __len__(self) -> int:
        return len(self._publishers) + len(self._subscribers)

    def __contains__(self, path: object) -> bool:
        return path in self._publishers or path in self._subscribers
