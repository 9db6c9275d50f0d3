"""Command-line interface for forgemini."""

from __future__ import annotations

import argparse
import dataclasses
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import constants
from .app import ForgeMiniApp, SubsystemFactory
from .config import load_config
from .housekeeping import Optimizer
from .logging import configure_logging

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forgemini", description="Telemetry bus sync for robot subsystems"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    start_parser = subparsers.add_parser("start", help="Run the control loop")
    start_parser.add_argument(
        "-s",
        "--subsystem",
        action="append",
        default=[],
        metavar="MODULE:FACTORY",
        help="Subsystem factory taking the channel cache (repeatable)",
    )

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )
    subparsers.add_parser(
        "sweep-logs", help="Delete old robot logs beyond the retention limit"
    )

    return parser


def load_factory(target: str) -> SubsystemFactory:
    """Resolve ``package.module:callable`` into a subsystem factory."""
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Invalid subsystem factory '{target}' (expected MODULE:FACTORY)")
    module = importlib.import_module(module_name)
    factory = getattr(module, attribute)
    if not callable(factory):
        raise ValueError(f"Subsystem factory '{target}' is not callable")
    return factory


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        factories: List[SubsystemFactory] = []
        for target in args.subsystem:
            try:
                factories.append(load_factory(target))
            except (ImportError, AttributeError, ValueError) as exc:
                LOGGER.error("Cannot load subsystem %s: %s", target, exc)
                return 1
        ForgeMiniApp.start(config, factories)
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    if args.command == "sweep-logs":
        configure_logging(dataclasses.replace(config.logging, path=None))
        deleted = Optimizer(config.housekeeping).clean_old_logs()
        print(f"Deleted {len(deleted)} log file(s) from {config.housekeeping.log_dir}")
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
