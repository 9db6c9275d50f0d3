import pytest

from forgemini.adapters import MemoryBus
from forgemini.telemetry import ChannelCache


@pytest.fixture
def bus() -> MemoryBus:
    return MemoryBus()


@pytest.fixture
def channels(bus: MemoryBus) -> ChannelCache:
    return ChannelCache(bus)
