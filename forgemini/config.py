"""Configuration loader for forgemini."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import constants

TRANSPORTS = ("memory", "mqtt")


@dataclass(slots=True)
class BusConfig:
    transport: str = "memory"
    broker_host: str = constants.DEFAULT_BROKER_HOST
    broker_port: int = constants.DEFAULT_BROKER_PORT
    username: Optional[str] = None
    password: Optional[str] = None
    base_topic: str = constants.DEFAULT_BASE_TOPIC
    client_id: str = constants.APP_NAME
    settle_seconds: float = 0.5


@dataclass(slots=True)
class SchedulerConfig:
    period_seconds: float = constants.DEFAULT_PERIOD_SECONDS


@dataclass(slots=True)
class HousekeepingConfig:
    log_dir: Path = constants.DEFAULT_ROBOT_LOG_DIR
    log_pattern: str = constants.DEFAULT_ROBOT_LOG_PATTERN
    max_log_files: int = constants.DEFAULT_MAX_LOG_FILES
    memory_threshold: float = 0.20
    gc_check_cycles: int = 100
    disable_live_window: bool = True


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    log_network: bool = False
    log_tasks: bool = False


@dataclass(slots=True)
class HealthConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 0


@dataclass(slots=True)
class ForgeConfig:
    bus: BusConfig
    scheduler: SchedulerConfig
    housekeeping: HousekeepingConfig
    logging: LoggingConfig
    health: HealthConfig
    raw: ConfigParser
    path: Path


def load_config(path: Optional[Path] = None) -> ForgeConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "bus": {
                "transport": "memory",
                "broker_host": constants.DEFAULT_BROKER_HOST,
                "broker_port": str(constants.DEFAULT_BROKER_PORT),
                "base_topic": constants.DEFAULT_BASE_TOPIC,
                "client_id": constants.APP_NAME,
                "settle_seconds": "0.5",
            },
            "scheduler": {
                "period_seconds": str(constants.DEFAULT_PERIOD_SECONDS),
            },
            "housekeeping": {
                "log_dir": str(constants.DEFAULT_ROBOT_LOG_DIR),
                "log_pattern": constants.DEFAULT_ROBOT_LOG_PATTERN,
                "max_log_files": str(constants.DEFAULT_MAX_LOG_FILES),
                "memory_threshold": "0.20",
                "gc_check_cycles": "100",
                "disable_live_window": "true",
            },
            "logging": {
                "level": "INFO",
                "path": str(constants.DEFAULT_LOG_PATH),
                "log_network": "false",
                "log_tasks": "false",
            },
            "health": {
                "enabled": "false",
                "host": "127.0.0.1",
                "port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    broker_host_value = parser.get("bus", "broker_host")
    broker_port_value = parser.getint(
        "bus", "broker_port", fallback=constants.DEFAULT_BROKER_PORT
    )

    if ":" in broker_host_value:
        host_part, port_part = broker_host_value.rsplit(":", 1)
        try:
            parsed_port = int(port_part)
        except ValueError:
            pass
        else:
            broker_host_value = host_part
            broker_port_value = parsed_port
            parser.set("bus", "broker_host", host_part)
            parser.set("bus", "broker_port", str(parsed_port))

    transport = parser.get("bus", "transport").strip().lower()
    if transport not in TRANSPORTS:
        transport = "memory"

    bus = BusConfig(
        transport=transport,
        broker_host=broker_host_value,
        broker_port=broker_port_value,
        username=parser.get("bus", "username", fallback=None),
        password=parser.get("bus", "password", fallback=None),
        base_topic=parser.get("bus", "base_topic"),
        client_id=parser.get("bus", "client_id"),
        settle_seconds=max(
            0.0, parser.getfloat("bus", "settle_seconds", fallback=0.5)
        ),
    )

    default_period = SchedulerConfig().period_seconds
    try:
        period_value = parser.getfloat(
            "scheduler", "period_seconds", fallback=default_period
        )
    except ValueError:
        period_value = default_period
    if period_value <= 0:
        period_value = default_period

    scheduler = SchedulerConfig(period_seconds=period_value)

    housekeeping = HousekeepingConfig(
        log_dir=Path(parser.get("housekeeping", "log_dir")).expanduser(),
        log_pattern=parser.get("housekeeping", "log_pattern"),
        max_log_files=max(
            0, parser.getint("housekeeping", "max_log_files", fallback=10)
        ),
        memory_threshold=max(
            0.0,
            min(
                1.0,
                parser.getfloat("housekeeping", "memory_threshold", fallback=0.20),
            ),
        ),
        gc_check_cycles=max(
            1, parser.getint("housekeeping", "gc_check_cycles", fallback=100)
        ),
        disable_live_window=parser.getboolean(
            "housekeeping", "disable_live_window", fallback=True
        ),
    )

    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(
            parser.get("logging", "path", fallback=str(constants.DEFAULT_LOG_PATH))
        ).expanduser(),
        log_network=parser.getboolean("logging", "log_network", fallback=False),
        log_tasks=parser.getboolean("logging", "log_tasks", fallback=False),
    )

    health = HealthConfig(
        enabled=parser.getboolean("health", "enabled", fallback=False),
        host=parser.get("health", "host", fallback="127.0.0.1"),
        port=parser.getint("health", "port", fallback=0),
    )

    return ForgeConfig(
        bus=bus,
        scheduler=scheduler,
        housekeeping=housekeeping,
        logging=logging_config,
        health=health,
        raw=parser,
        path=config_path,
    )


def save_config(config: ForgeConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
