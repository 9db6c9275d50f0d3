from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import pytest

from forgemini.core import Color, ValueKind
from forgemini.telemetry.bindings import (
    Tunable,
    declared_signals,
    declared_tunables,
    kind_from_accessor,
    kind_from_annotation,
    kind_from_value,
    resolve_kind,
    signal,
)


@dataclass
class Pose:
    x: float
    y: float


@pytest.mark.parametrize(
    ("annotation", "expected"),
    [
        (bool, ValueKind.BOOLEAN),
        (int, ValueKind.NUMBER),
        (float, ValueKind.NUMBER),
        (str, ValueKind.STRING),
        (Color, ValueKind.STRING),
        (Pose, ValueKind.STRUCT),
        (Optional[Pose], ValueKind.STRUCT),
        (Optional[float], ValueKind.NUMBER),
        (float | None, ValueKind.NUMBER),
        (List[float], ValueKind.NUMBER_ARRAY),
        (Tuple[int, ...], ValueKind.NUMBER_ARRAY),
        (Sequence[str], ValueKind.STRING_ARRAY),
        (list[str], ValueKind.STRING_ARRAY),
        (dict, None),
        (List[object], None),
        (Optional[int | str], None),
    ],
)
def test_kind_from_annotation(annotation, expected) -> None:
    assert kind_from_annotation(annotation) is expected


def test_resolve_kind_accepts_names() -> None:
    assert resolve_kind("Number[]") is ValueKind.NUMBER_ARRAY
    assert resolve_kind(ValueKind.STRUCT) is ValueKind.STRUCT
    assert resolve_kind("float64") is None
    assert resolve_kind(None) is None


def test_kind_from_value_only_numbers_and_booleans() -> None:
    assert kind_from_value(True) is ValueKind.BOOLEAN
    assert kind_from_value(3) is ValueKind.NUMBER
    assert kind_from_value("fast") is None


class Base:
    gain = Tunable(1.0)

    @signal("Voltage")
    def voltage(self) -> float:
        return 12.0

    @signal()
    def label(self) -> str:
        return "base"


class Derived(Base):
    limit = Tunable(40, key="CurrentLimit")

    @signal("Label", on_change=True)
    def label(self) -> str:
        return "derived"

    @signal("Temps", slow_scale=5)
    def temps(self) -> List[float]:
        return [30.0, 31.5]

    def untracked(self) -> float:
        return 0.0


def test_declared_signals_follow_inheritance_order() -> None:
    owner = Derived()

    bindings = declared_signals(owner)

    assert [binding.key for binding in bindings] == ["Voltage", "Label", "Temps"]
    label = bindings[1]
    assert label.on_change is True
    assert label.accessor() == "derived"
    assert bindings[2].slow_scale == 5
    assert kind_from_accessor(bindings[2].accessor) is ValueKind.NUMBER_ARRAY


def test_declared_tunables_use_attribute_names() -> None:
    bindings = declared_tunables(Derived())

    assert [(binding.key, binding.attribute) for binding in bindings] == [
        ("gain", "gain"),
        ("CurrentLimit", "limit"),
    ]


def test_tunable_descriptor_is_per_instance() -> None:
    first, second = Derived(), Derived()

    first.limit = 25

    assert first.limit == 25
    assert second.limit == 40
    assert isinstance(Derived.limit, Tunable)


def test_signal_key_defaults_to_method_name() -> None:
    bindings = declared_signals(Base())

    assert [binding.key for binding in bindings] == ["Voltage", "label"]
