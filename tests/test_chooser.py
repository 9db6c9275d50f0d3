import logging

import pytest

from forgemini.adapters import MemoryBus
from forgemini.telemetry import ChannelCache, SmartChooser


def test_publish_lists_options_and_default(bus: MemoryBus, channels: ChannelCache) -> None:
    chooser = (
        SmartChooser("Auto", channels)
        .set_default("Do Nothing", "noop")
        .add("Right Auto", "right")
        .add("Left Auto", "left")
    )

    chooser.publish()

    assert bus.value("SmartDashboard/Auto/options") == [
        "Do Nothing",
        "Right Auto",
        "Left Auto",
    ]
    assert bus.value("SmartDashboard/Auto/default") == "Do Nothing"


def test_get_returns_dashboard_selection(bus: MemoryBus, channels: ChannelCache) -> None:
    chooser = SmartChooser("Auto", channels).set_default("Do Nothing", "noop")
    chooser.add("Right Auto", "right")
    chooser.publish()

    assert chooser.get() == "noop"
    assert chooser.get_selected_name() == "Do Nothing"

    bus.put("SmartDashboard/Auto/selected", "Right Auto")

    assert chooser.get() == "right"
    assert chooser.get_selected_name() == "Right Auto"
    assert bus.value("SmartDashboard/Auto/active") == "Right Auto"


def test_unknown_selection_falls_back_to_default(
    bus: MemoryBus, channels: ChannelCache
) -> None:
    chooser = SmartChooser("Auto", channels).set_default("Do Nothing", "noop")
    bus.put("SmartDashboard/Auto/selected", "Removed Auto")

    assert chooser.get() == "noop"


def test_no_selection_without_default(channels: ChannelCache) -> None:
    chooser = SmartChooser("Mode", channels, table="Config")

    assert chooser.get() is None
    assert chooser.get_selected_name() == "No Selection"
    assert chooser.table == "Config/Mode"


def test_add_before_default_warns(channels: ChannelCache, caplog) -> None:
    caplog.set_level(logging.WARNING)

    SmartChooser("Auto", channels).add("Right Auto", "right")

    assert "before setting a default" in caplog.text


def test_none_values_are_rejected(channels: ChannelCache) -> None:
    chooser = SmartChooser("Auto", channels)

    with pytest.raises(ValueError, match="cannot be None"):
        chooser.set_default("Nothing", None)
    with pytest.raises(ValueError, match="cannot be None"):
        chooser.add("Nothing", None)
