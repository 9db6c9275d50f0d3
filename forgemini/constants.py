"""Constants used across the forgemini package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "forgemini"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".forgemini" / DEFAULT_CONFIG_FILENAME

DEFAULT_LOG_PATH = Path.home() / ".forgemini" / "logs" / f"{APP_NAME}.log"

# Robot data logs rotated by the housekeeping sweep
DEFAULT_ROBOT_LOG_DIR = Path("/home/lvuser/logs")
DEFAULT_ROBOT_LOG_PATTERN = "*.wpilog"
DEFAULT_MAX_LOG_FILES = 10

DEFAULT_BROKER_HOST = "localhost"
DEFAULT_BROKER_PORT = 1883
DEFAULT_BASE_TOPIC = "forgemini"

DEFAULT_PERIOD_SECONDS = 0.02

PATH_SEPARATOR = "/"
