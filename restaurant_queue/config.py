from __future__ import annotations

# Command-line configuration shared by every entry point.
#
# All settings are argparse flags with defaults; there is no config file.

import argparse
import logging

from .mqtt_topics import DEFAULT_NAMESPACE
from .tracker import TrackerSettings


def add_mqtt_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--mqtt-host", default="127.0.0.1")
    p.add_argument("--mqtt-port", type=int, default=1883)
    p.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])


def add_tracker_args(p: argparse.ArgumentParser) -> None:
    defaults = TrackerSettings()
    p.add_argument(
        "--lock-timeout",
        type=float,
        default=defaults.lock_timeout,
        help="seconds to wait for a queue lock before retrying",
    )
    p.add_argument("--lock-retries", type=int, default=defaults.lock_retries)
    p.add_argument("--retry-backoff", type=float, default=defaults.retry_backoff)
    p.add_argument("--notify-attempts", type=int, default=5, help="delivery attempts per notification")
    p.add_argument("--notify-base-delay", type=float, default=1.0, help="first retry delay in seconds")
    p.add_argument("--notify-max-delay", type=float, default=30.0)
    p.add_argument(
        "--publish-status-every",
        type=float,
        default=5.0,
        help="seconds between periodic queue snapshot broadcasts",
    )


def tracker_settings_from_args(args: argparse.Namespace) -> TrackerSettings:
    return TrackerSettings(
        lock_timeout=args.lock_timeout,
        lock_retries=args.lock_retries,
        retry_backoff=args.retry_backoff,
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
