"""Signal and tunable declarations.

Subsystems declare what they exchange with the bus in one of two ways:

* statically, on the class body, with the :func:`signal` decorator on
  zero-argument methods and :class:`Tunable` class attributes;
* explicitly, from the constructor, with ``add_signal`` / ``add_tunable``
  (see :class:`~forgemini.telemetry.subsystem.IOSubsystem`).

Both paths produce the same ordered lists of :class:`SignalBinding` and
:class:`TunableBinding` records consumed by the task compiler.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import logging
import types
import typing
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from ..core import Color, ValueKind

LOGGER = logging.getLogger(__name__)

SIGNAL_ATTRIBUTE = "__forgemini_signal__"

KindSpec = Union[ValueKind, str, None]


@dataclass(frozen=True, slots=True)
class SignalSpec:
    """Declaration metadata attached to a decorated method."""

    key: str
    kind: KindSpec = None
    on_change: bool = False
    slow_scale: int = 1


@dataclass(frozen=True, slots=True)
class SignalBinding:
    key: str
    accessor: Callable[[], Any]
    kind: KindSpec = None
    on_change: bool = False
    slow_scale: int = 1


@dataclass(frozen=True, slots=True)
class TunableBinding:
    key: str
    attribute: str
    kind: KindSpec = None


def signal(
    key: str = "",
    *,
    kind: KindSpec = None,
    on_change: bool = False,
    slow_scale: int = 1,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark a zero-argument method whose return value is published every cycle.

    Args:
        key: Entry name under the subsystem table. Defaults to the method name.
        kind: Value kind; inferred from the return annotation when omitted.
        on_change: Only publish when the value differs from the last one sent.
        slow_scale: Evaluate the method once every ``slow_scale`` cycles.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        setattr(
            func,
            SIGNAL_ATTRIBUTE,
            SignalSpec(
                key=key or func.__name__,
                kind=kind,
                on_change=on_change,
                slow_scale=slow_scale,
            ),
        )
        return func

    return decorator


class Tunable:
    """Class attribute whose value is kept in sync with the bus.

    Reads return the per-instance value (or the declared default); writes from
    user code and from the bus both land in the instance dictionary::

        class Shooter(IOSubsystem):
            k_p = Tunable(0.1, key="kP")
            enabled = Tunable(True)
    """

    def __init__(self, default: Any, *, key: str = "", kind: KindSpec = None) -> None:
        self.default = default
        self.key = key
        self.kind = kind
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        if not self.key:
            self.key = name

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        return instance.__dict__.get(self.name, self.default)

    def __set__(self, instance: Any, value: Any) -> None:
        instance.__dict__[self.name] = value

    def __repr__(self) -> str:
        return f"Tunable({self.default!r}, key={self.key!r})"


def resolve_kind(kind: KindSpec) -> Optional[ValueKind]:
    """Normalize a declared kind, returning ``None`` when it is not supported."""
    if kind is None:
        return None
    if isinstance(kind, ValueKind):
        return kind
    try:
        return ValueKind(str(kind).lower())
    except ValueError:
        return None


def kind_from_annotation(annotation: Any) -> Optional[ValueKind]:
    """Map a Python type annotation onto a bus value kind."""
    if annotation is bool:
        return ValueKind.BOOLEAN
    if annotation in (int, float):
        return ValueKind.NUMBER
    if annotation is str or annotation is Color:
        return ValueKind.STRING
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return ValueKind.STRUCT

    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return kind_from_annotation(members[0])
        return None
    if origin in (list, tuple, collections.abc.Sequence):
        args = [arg for arg in typing.get_args(annotation) if arg is not Ellipsis]
        if args and all(arg is str for arg in args):
            return ValueKind.STRING_ARRAY
        if args and all(arg in (int, float) for arg in args):
            return ValueKind.NUMBER_ARRAY
    return None


def kind_from_accessor(accessor: Callable[[], Any]) -> Optional[ValueKind]:
    func = getattr(accessor, "__func__", accessor)
    try:
        hints = typing.get_type_hints(func)
    except Exception:
        LOGGER.debug("Unable to resolve annotations for %r", accessor, exc_info=True)
        return None
    if "return" not in hints:
        return None
    return kind_from_annotation(hints["return"])


def kind_from_value(value: Any) -> Optional[ValueKind]:
    """Tunables only carry numbers and booleans."""
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    return None


def _class_members(cls: type) -> Dict[str, Any]:
    """Members of ``cls`` and its bases, base classes first, declaration order."""
    members: Dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        for name, member in vars(klass).items():
            members[name] = member
    return members


def declared_signals(owner: Any) -> List[SignalBinding]:
    """Collect ``@signal`` methods of ``owner``'s class, bound to ``owner``."""
    bindings: List[SignalBinding] = []
    for name, member in _class_members(type(owner)).items():
        spec = getattr(member, SIGNAL_ATTRIBUTE, None)
        if not isinstance(spec, SignalSpec):
            continue
        accessor = getattr(owner, name)
        bindings.append(
            SignalBinding(
                key=spec.key,
                accessor=accessor,
                kind=spec.kind,
                on_change=spec.on_change,
                slow_scale=spec.slow_scale,
            )
        )
    return bindings


def declared_tunables(owner: Any) -> List[TunableBinding]:
    """Collect :class:`Tunable` attributes of ``owner``'s class."""
    bindings: List[TunableBinding] = []
    for name, member in _class_members(type(owner)).items():
        if isinstance(member, Tunable):
            bindings.append(TunableBinding(key=member.key, attribute=name, kind=member.kind))
    return bindings
