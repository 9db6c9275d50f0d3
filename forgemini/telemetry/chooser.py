"""Dashboard option chooser published on the telemetry bus."""

from __future__ import annotations

import logging
from typing import Dict, Generic, Optional, Tuple, TypeVar

from ..core import ValueKind
from .channels import ChannelCache

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CHOOSER_TABLE = "SmartDashboard"
NO_SELECTION = "No Selection"


class SmartChooser(Generic[T]):
    """Fluent wrapper around a bus-backed list of named options.

    Entries below ``{table}/{key}``:

    * ``options`` - names of every option, in insertion order;
    * ``default`` - name of the default option;
    * ``selected`` - name picked on the dashboard (written by the dashboard);
    * ``active`` - name the robot resolved, echoed back on every :meth:`get`.

    Usage::

        chooser = (
            SmartChooser("Auto", channels)
            .set_default("Do Nothing", do_nothing)
            .add("Right Auto", right_auto)
        )
        chooser.publish()
        routine = chooser.get()
    """

    def __init__(
        self, key: str, channels: ChannelCache, *, table: str = DEFAULT_CHOOSER_TABLE
    ) -> None:
        self.key = key
        self._channels = channels
        self._table = f"{table}/{key}"
        self._options: Dict[str, T] = {}
        self._default_name: Optional[str] = None

    @property
    def table(self) -> str:
        return self._table

    def set_default(self, name: str, value: T) -> "SmartChooser[T]":
        if value is None:
            raise ValueError("Default value cannot be None")
        self._default_name = name
        self._options[name] = value
        return self

    def add(self, name: str, value: T) -> "SmartChooser[T]":
        if self._default_name is None:
            LOGGER.warning(
                "Adding options to '%s' before setting a default; the dashboard "
                "may show no selection",
                self.key,
            )
        if value is None:
            raise ValueError("Option value cannot be None")
        self._options[name] = value
        return self

    def publish(self) -> None:
        """Publish the option list and default to the bus."""
        self._channels.put(
            self._table, "options", list(self._options), ValueKind.STRING_ARRAY
        )
        self._channels.put(
            self._table, "default", self._default_name or "", ValueKind.STRING
        )
        LOGGER.debug("Published chooser %s with %d options", self.key, len(self._options))

    def _resolve(self) -> Tuple[Optional[str], Optional[T]]:
        selected = self._channels.get(
            self._table, "selected", self._default_name or "", ValueKind.STRING
        )
        if selected in self._options:
            return selected, self._options[selected]
        if self._default_name is not None:
            return self._default_name, self._options[self._default_name]
        return None, None

    def get(self) -> Optional[T]:
        """Return the selected option's value, falling back to the default."""
        name, value = self._resolve()
        self._channels.put(self._table, "active", name or "", ValueKind.STRING)
        return value

    def get_selected_name(self) -> str:
        """Return the display name of the selected option."""
        name, value = self._resolve()
        if value is None or name is None:
            return NO_SELECTION
        return name

    def options(self) -> Dict[str, T]:
        return dict(self._options)
