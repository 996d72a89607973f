"""Command line entry point: ``mqttsnap -H mqtt://broker:1883``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from mqttsnap import __version__
from mqttsnap.bridge import EXIT_FAILURE, EXIT_OK, run_bridge
from mqttsnap.config import BridgeConfig
from mqttsnap.exceptions import BridgeConfigError


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mqttsnap",
        description="Serve the last MQTT message of every topic as JSON over HTTP.",
    )
    parser.add_argument("-H", "--host", metavar="HOST_URL", help="Broker URI (required, or MQTTSNAP_HOST).")
    parser.add_argument("-u", "--username", help="Broker username.")
    parser.add_argument("-p", "--password", help="Broker password.")
    parser.add_argument("-t", "--topic", help='Topic filter (default "#").')
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Append every message to this file instead of printing it.",
    )
    parser.add_argument(
        "-V",
        "--protocol-version",
        type=int,
        choices=(3, 5),
        help="MQTT protocol version (default 3).",
    )
    parser.add_argument("--http-host", help="Interface for the HTTP server (default 0.0.0.0).")
    parser.add_argument("--http-port", type=int, help="Port for the HTTP server (default 12345).")
    parser.add_argument("--keepalive", type=int, help="MQTT keepalive in seconds (default 30).")
    parser.add_argument("--qos", type=int, choices=(0, 1, 2), help="Subscription QoS (default 1).")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> BridgeConfig:
    """Merge parsed CLI flags over ``MQTTSNAP_*`` environment variables."""
    return BridgeConfig.from_env(
        host=args.host,
        username=args.username,
        password=args.password,
        topic=args.topic,
        output=args.output,
        protocol_version=args.protocol_version,
        http_host=args.http_host,
        http_port=args.http_port,
        keepalive=args.keepalive,
        qos=args.qos,
    ).validate()


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
    except BridgeConfigError as exc:
        print(f"[ERROR] Invalid configuration: {exc}.", file=sys.stderr)
        return EXIT_FAILURE

    try:
        return asyncio.run(run_bridge(config))
    except KeyboardInterrupt:
        return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
