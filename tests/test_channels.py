"""Tests for the channel handle cache."""

import threading
import time

import pytest

from forgemini.adapters import MemoryBus
from forgemini.core import BindingConfigurationError, ValueKind
from forgemini.telemetry import (
    ChannelCache,
    UnavailablePublisher,
    UnavailableSubscriber,
)


class CountingBus(MemoryBus):
    """Memory bus that counts handle creation and can slow it down."""

    def __init__(self, delay: float = 0.0) -> None:
        super().__init__()
        self.delay = delay
        self.publish_calls = 0
        self.subscribe_calls = 0
        self._count_lock = threading.Lock()

    def publish(self, path, kind):
        with self._count_lock:
            self.publish_calls += 1
        if self.delay:
            time.sleep(self.delay)
        return super().publish(path, kind)

    def subscribe(self, path, kind, default):
        with self._count_lock:
            self.subscribe_calls += 1
        return super().subscribe(path, kind, default)


class BrokenBus(MemoryBus):
    def publish(self, path, kind):
        raise ConnectionError("bus offline")

    def subscribe(self, path, kind, default):
        raise ConnectionError("bus offline")


def test_publisher_is_cached_per_path() -> None:
    bus = CountingBus()
    channels = ChannelCache(bus)

    first = channels.publisher("Drive", "Speed", ValueKind.NUMBER)
    second = channels.publisher("Drive", "Speed", ValueKind.NUMBER)
    other = channels.publisher("Drive", "Heading", ValueKind.NUMBER)

    assert first is second
    assert other is not first
    assert bus.publish_calls == 2
    assert "Drive/Speed" in channels


def test_subscriber_is_cached_per_path() -> None:
    bus = CountingBus()
    channels = ChannelCache(bus)

    first = channels.subscriber("Drive", "Enabled", ValueKind.BOOLEAN, False)
    second = channels.subscriber("Drive", "Enabled", ValueKind.BOOLEAN, True)

    assert first is second
    assert bus.subscribe_calls == 1
    # The first caller's default sticks
    assert second.get() is False


def test_concurrent_creation_stores_single_handle() -> None:
    bus = CountingBus(delay=0.01)
    channels = ChannelCache(bus)
    barrier = threading.Barrier(8)
    results = []
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        handle = channels.publisher("Arm", "Angle", ValueKind.NUMBER)
        with results_lock:
            results.append(handle)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 8
    assert all(handle is results[0] for handle in results)
    assert bus.publish_calls == 1


def test_put_and_get_infer_kinds(bus: MemoryBus, channels: ChannelCache) -> None:
    channels.put("Drive", "Speed", 3)
    channels.put("Drive", "Enabled", True)
    channels.put("Drive", "Mode", "auto")
    channels.put("Drive", "Pose", [1.0, 2.0, 0.5])

    assert bus.value("Drive/Speed") == 3.0
    assert isinstance(bus.value("Drive/Speed"), float)
    assert bus.value("Drive/Enabled") is True
    assert bus.value("Drive/Mode") == "auto"
    assert bus.value("Drive/Pose") == [1.0, 2.0, 0.5]

    assert channels.get("Drive", "Speed", 0.0) == 3.0
    assert channels.get("Drive", "Missing", 7.5) == 7.5


def test_put_rejects_unsupported_values(channels: ChannelCache) -> None:
    with pytest.raises(BindingConfigurationError):
        channels.put("Drive", "Blob", object())


def test_exists_reports_bus_entries(bus: MemoryBus, channels: ChannelCache) -> None:
    assert channels.exists("Shooter", "kP") is False
    bus.put("Shooter/kP", 0.4)
    assert channels.exists("Shooter", "kP") is True


def test_close_scope_releases_only_matching_table(
    bus: MemoryBus, channels: ChannelCache
) -> None:
    drive_pub = channels.publisher("Drive", "Speed", ValueKind.NUMBER)
    drive_sub = channels.subscriber("Drive", "Speed", ValueKind.NUMBER, 0.0)
    drivetrain = channels.publisher("DriveTrain", "Speed", ValueKind.NUMBER)

    removed = channels.close_scope("Drive")

    assert removed == 2
    assert drive_pub.closed is True
    assert drive_sub.closed is True
    assert drivetrain.closed is False
    assert "Drive/Speed" not in channels
    assert "DriveTrain/Speed" in channels

    # A new handle is created after the scope was closed
    assert channels.publisher("Drive", "Speed", ValueKind.NUMBER) is not drive_pub


def test_close_scope_continues_after_close_failure(channels: ChannelCache) -> None:
    failing = channels.publisher("Arm", "A", ValueKind.NUMBER)
    healthy = channels.publisher("Arm", "B", ValueKind.NUMBER)

    def explode() -> None:
        raise RuntimeError("close failed")

    failing.close = explode

    assert channels.close_scope("Arm") == 2
    assert healthy.closed is True
    assert len(channels) == 0


def test_close_scope_without_handles_is_noop(channels: ChannelCache) -> None:
    assert channels.close_scope("Nothing") == 0


def test_unavailable_transport_caches_degraded_handles() -> None:
    channels = ChannelCache(BrokenBus())

    publisher = channels.publisher("Arm", "Angle", ValueKind.NUMBER)
    subscriber = channels.subscriber("Arm", "Angle", ValueKind.NUMBER, 1.5)

    assert isinstance(publisher, UnavailablePublisher)
    assert isinstance(subscriber, UnavailableSubscriber)
    assert channels.publisher("Arm", "Angle", ValueKind.NUMBER) is publisher

    publisher.set(2.0)
    assert subscriber.get() == 1.5
    channels.put("Arm", "Angle", 3.0)
    assert channels.get("Arm", "Angle", 1.5) == 1.5
