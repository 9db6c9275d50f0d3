"""Value kinds and helpers shared by transports and update tasks."""

from __future__ import annotations

import dataclasses
import math
from enum import Enum
from typing import Any, Optional

from ..constants import PATH_SEPARATOR


class ValueKind(str, Enum):
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"
    NUMBER_ARRAY = "number[]"
    STRING_ARRAY = "string[]"
    STRUCT = "struct"


# Kinds a tunable field may be bound to
TUNABLE_KINDS = frozenset({ValueKind.NUMBER, ValueKind.BOOLEAN})


@dataclasses.dataclass(frozen=True, slots=True)
class Color:
    """RGB color published on the bus as a ``#RRGGBB`` string."""

    red: float
    green: float
    blue: float

    def hex_string(self) -> str:
        def channel(value: float) -> int:
            return max(0, min(255, int(round(value * 255))))

        return "#{:02X}{:02X}{:02X}".format(
            channel(self.red), channel(self.green), channel(self.blue)
        )


def make_path(table: str, key: str) -> str:
    """Join a table namespace and a leaf key into a channel path."""
    return f"{table}{PATH_SEPARATOR}{key}"


def is_struct(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def infer_kind(value: Any) -> Optional[ValueKind]:
    """Best-effort kind detection for a runtime value.

    Returns ``None`` when the value cannot be carried by the bus.
    """
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, (str, Color)):
        return ValueKind.STRING
    if isinstance(value, (list, tuple)):
        if all(isinstance(item, str) for item in value) and value:
            return ValueKind.STRING_ARRAY
        if all(
            isinstance(item, (int, float)) and not isinstance(item, bool)
            for item in value
        ):
            return ValueKind.NUMBER_ARRAY
        return None
    if is_struct(value):
        return ValueKind.STRUCT
    return None


def coerce_value(kind: ValueKind, value: Any) -> Any:
    """Normalize a value to the representation stored for ``kind``."""
    if kind is ValueKind.NUMBER:
        return float(value)
    if kind is ValueKind.BOOLEAN:
        return bool(value)
    if kind is ValueKind.STRING:
        if isinstance(value, Color):
            return value.hex_string()
        return str(value)
    if kind is ValueKind.NUMBER_ARRAY:
        return [float(item) for item in value]
    if kind is ValueKind.STRING_ARRAY:
        return [str(item) for item in value]
    return value


def numbers_differ(current: float, previous: float, epsilon: float = 1e-5) -> bool:
    if math.isnan(current) or math.isnan(previous):
        return not (math.isnan(current) and math.isnan(previous))
    return abs(current - previous) > epsilon
