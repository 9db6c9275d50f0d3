"""Per-cycle update tasks for signals and tunables.

The decision logic lives in small pure functions (:func:`throttle`,
:func:`advance`, :func:`reconcile`, :func:`sync`) so it can be exercised
without a bus. The task classes only wire those functions to an accessor or
field and to a cached bus handle.

Tasks never raise: a failing accessor, field write or bus handle is logged at
debug level and the task simply does nothing for that cycle.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from ..core import ValueKind, coerce_value
from ..core.models import numbers_differ

LOGGER = logging.getLogger(__name__)

# Minimum change for a number to count as a new value
NUMBER_EPSILON = 1e-5


@dataclass(frozen=True, slots=True)
class FilterState:
    """Last value sent by a signal; ``first_run`` until the first send."""

    last_value: Any = None
    first_run: bool = True


INITIAL_FILTER_STATE = FilterState()


def throttle(cycle: int, slow_scale: int) -> Tuple[int, bool]:
    """Advance the downsample counter.

    Returns the new counter and whether the accessor is due this cycle. With
    ``slow_scale = k`` the accessor is due on every k-th call.
    """
    cycle += 1
    if cycle < slow_scale:
        return cycle, False
    return 0, True


def advance(
    state: FilterState, kind: ValueKind, on_change: bool, current: Any
) -> Tuple[FilterState, bool]:
    """Decide whether ``current`` is sent and compute the follow-up state.

    The returned state is ``state`` itself when nothing is sent.
    """
    if kind is ValueKind.NUMBER:
        send = (
            not on_change
            or state.first_run
            or numbers_differ(current, state.last_value, NUMBER_EPSILON)
        )
        if not send:
            return state, False
        return FilterState(last_value=current, first_run=False), True

    send = not on_change or state.first_run or current != state.last_value
    if not send:
        return state, False
    if not on_change:
        # History only matters while filtering
        if state.first_run:
            return FilterState(last_value=None, first_run=False), True
        return state, True
    if kind is ValueKind.STRUCT:
        # Accessors may mutate and return the same instance
        current = copy.deepcopy(current)
    return FilterState(last_value=current, first_run=False), True


def reconcile(exists: bool, field_value: Any, bus_value: Any) -> Tuple[Any, bool]:
    """Startup authority rule for a tunable.

    Returns the value the field should hold and whether the field value must be
    pushed to the bus as the entry's initial value. An existing bus entry wins;
    otherwise the field seeds the bus.
    """
    if exists:
        return bus_value, False
    return field_value, True


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def sync(
    last_seen: Any, current: Any, kind: Optional[ValueKind] = None
) -> Tuple[Any, bool]:
    """Return the new last-seen value and whether the field must be written.

    Numbers compare exactly, except that NaN counts as equal to NaN.
    """
    if kind is ValueKind.NUMBER and _is_number(current) and _is_number(last_seen):
        changed = numbers_differ(current, last_seen, 0.0)
    else:
        changed = current != last_seen
    if not changed:
        return last_seen, False
    return current, True


class SignalTask:
    """Publishes one accessor's value, throttled and optionally change-filtered."""

    __slots__ = (
        "key",
        "kind",
        "on_change",
        "slow_scale",
        "cycle",
        "state",
        "sends",
        "_accessor",
        "_publisher",
    )

    def __init__(
        self,
        key: str,
        accessor: Callable[[], Any],
        publisher: Any,
        *,
        kind: ValueKind,
        on_change: bool = False,
        slow_scale: int = 1,
    ) -> None:
        self.key = key
        self.kind = kind
        self.on_change = on_change
        self.slow_scale = max(1, int(slow_scale))
        self.cycle = 0
        self.state = INITIAL_FILTER_STATE
        self.sends = 0
        self._accessor = accessor
        self._publisher = publisher

    def __call__(self) -> None:
        self.cycle, due = throttle(self.cycle, self.slow_scale)
        if not due:
            return

        try:
            current = self._accessor()
            if current is None and self.kind is ValueKind.STRUCT:
                return
            if self.kind is not ValueKind.STRUCT:
                current = coerce_value(self.kind, current)
            state, send = advance(self.state, self.kind, self.on_change, current)
            if not send:
                return
            self._publisher.set(current)
        except Exception:
            LOGGER.debug("Signal '%s' skipped this cycle", self.key, exc_info=True)
            return

        self.state = state
        self.sends += 1

    def __repr__(self) -> str:
        return (
            f"SignalTask(key={self.key!r}, kind={self.kind.value}, "
            f"on_change={self.on_change}, slow_scale={self.slow_scale})"
        )


class TunableTask:
    """Copies bus updates for one entry into an attribute of its owner."""

    __slots__ = ("key", "attribute", "kind", "last_seen", "_owner", "_subscriber")

    def __init__(
        self,
        key: str,
        owner: Any,
        attribute: str,
        subscriber: Any,
        *,
        kind: ValueKind,
        last_seen: Optional[Any] = None,
    ) -> None:
        self.key = key
        self.attribute = attribute
        self.kind = kind
        self.last_seen = last_seen
        self._owner = owner
        self._subscriber = subscriber

    def __call__(self) -> None:
        try:
            current = self._subscriber.get()
            last_seen, write = sync(self.last_seen, current, self.kind)
            if not write:
                return
            setattr(self._owner, self.attribute, current)
        except Exception:
            LOGGER.debug("Tunable '%s' not applied this cycle", self.key, exc_info=True)
            return

        self.last_seen = last_seen

    def __repr__(self) -> str:
        return f"TunableTask(key={self.key!r}, attribute={self.attribute!r})"
