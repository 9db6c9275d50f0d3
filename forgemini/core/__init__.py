"""Core primitives for forgemini."""

from .errors import BindingConfigurationError, ForgeMiniError, TransportError
from .models import (
    TUNABLE_KINDS,
    Color,
    ValueKind,
    coerce_value,
    infer_kind,
    is_struct,
    make_path,
)
from .protocols import BusTransport, Publisher, Subscriber

__all__ = [
    "BindingConfigurationError",
    "BusTransport",
    "Color",
    "ForgeMiniError",
    "Publisher",
    "Subscriber",
    "TUNABLE_KINDS",
    "TransportError",
    "ValueKind",
    "coerce_value",
    "infer_kind",
    "is_struct",
    "make_path",
]
