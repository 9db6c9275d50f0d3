"""Telemetry bus transports."""

from .memory import MemoryBus, MemoryPublisher, MemorySubscriber
from .mqtt import MQTTBus, MQTTClient, MQTTConnectionError

__all__ = [
    "MemoryBus",
    "MemoryPublisher",
    "MemorySubscriber",
    "MQTTBus",
    "MQTTClient",
    "MQTTConnectionError",
]
