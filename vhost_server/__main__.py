#!/usr/bin/env python3
"""
Command line entry point: serve the sites described by a JSON config file.

Usage:
    python -m vhost_server sites.json
    python -m vhost_server sites.json --port 9000 --log-requests
"""

import argparse
import dataclasses
import logging
import sys

from .core.config import ConfigLoader
from .core.server_core import VirtualHostServer
from .core.server_utils import ServerConfigError, configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vhost-server",
        description="Serve static files for several virtual hosts",
    )
    parser.add_argument("config", help="Path to the JSON configuration file")
    parser.add_argument("--host", help="Override the bind address")
    parser.add_argument("--port", type=int, help="Override the bind port")
    parser.add_argument("--log-requests", action="store_true", default=None,
                        help="Log every request")
    parser.add_argument("--plain-logs", action="store_true",
                        help="Plain text logs instead of JSON")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.DEBUG if args.debug else logging.INFO

    try:
        loader = ConfigLoader(args.config).load()
        overrides = {
            key: value for key, value in (
                ("host", args.host),
                ("port", args.port),
                ("log_requests", args.log_requests),
            ) if value is not None
        }
        if args.plain_logs:
            overrides["json_logs"] = False
        config = dataclasses.replace(loader.server_config, **overrides)
    except ServerConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(level, json_logs=config.json_logs)

    server = VirtualHostServer(loader.registry, config)
    try:
        server.run()
    except OSError as e:
        print(f"Server error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
