from pathlib import Path

from forgemini import constants
from forgemini.config import load_config, save_config


def test_load_config_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "forgemini.cfg"
    config = load_config(config_path)

    assert config.path == config_path
    assert config.bus.transport == "memory"
    assert config.bus.broker_host == constants.DEFAULT_BROKER_HOST
    assert config.bus.broker_port == constants.DEFAULT_BROKER_PORT
    assert config.bus.base_topic == constants.DEFAULT_BASE_TOPIC
    assert config.bus.username is None
    assert config.scheduler.period_seconds == constants.DEFAULT_PERIOD_SECONDS
    assert config.housekeeping.max_log_files == 10
    assert config.housekeeping.memory_threshold == 0.20
    assert config.housekeeping.gc_check_cycles == 100
    assert config.housekeeping.log_pattern == "*.wpilog"
    assert config.health.enabled is False
    assert config.logging.level == "INFO"
    assert config.logging.log_tasks is False


def test_load_config_parses_broker_host_with_port(tmp_path: Path) -> None:
    config_path = tmp_path / "forgemini.cfg"
    config_path.write_text(
        "[bus]\ntransport = mqtt\nbroker_host = 10.12.34.2:61198\n", encoding="utf-8"
    )

    config = load_config(config_path)

    assert config.bus.transport == "mqtt"
    assert config.bus.broker_host == "10.12.34.2"
    assert config.bus.broker_port == 61198
    assert config.raw.get("bus", "broker_host") == "10.12.34.2"
    assert config.raw.get("bus", "broker_port") == "61198"


def test_load_config_overrides_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "forgemini.cfg"
    config_path.write_text(
        """
[bus]
username = team1234
password = secret
base_topic = frc/1234/

[scheduler]
period_seconds = 0.01

[housekeeping]
log_dir = ~/robot-logs
max_log_files = 3
memory_threshold = 0.35
disable_live_window = false

[health]
enabled = true
port = 8089
        """.strip()
        + "\n",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.bus.username == "team1234"
    assert config.bus.password == "secret"
    assert config.bus.base_topic == "frc/1234/"
    assert config.scheduler.period_seconds == 0.01
    assert config.housekeeping.log_dir == Path("~/robot-logs").expanduser()
    assert config.housekeeping.max_log_files == 3
    assert config.housekeeping.memory_threshold == 0.35
    assert config.housekeeping.disable_live_window is False
    assert config.health.enabled is True
    assert config.health.port == 8089


def test_load_config_clamps_invalid_values(tmp_path: Path) -> None:
    config_path = tmp_path / "forgemini.cfg"
    config_path.write_text(
        """
[bus]
transport = carrier-pigeon
settle_seconds = -2

[scheduler]
period_seconds = -1

[housekeeping]
max_log_files = -4
memory_threshold = 1.7
gc_check_cycles = 0
        """.strip()
        + "\n",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.bus.transport == "memory"
    assert config.bus.settle_seconds == 0.0
    assert config.scheduler.period_seconds == constants.DEFAULT_PERIOD_SECONDS
    assert config.housekeeping.max_log_files == 0
    assert config.housekeeping.memory_threshold == 1.0
    assert config.housekeeping.gc_check_cycles == 1


def test_save_config_round_trips(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "forgemini.cfg"
    config = load_config(config_path)
    config.raw.set("bus", "base_topic", "frc/254")

    save_config(config)

    assert config_path.exists()
    assert load_config(config_path).bus.base_topic == "frc/254"
