"""
Utility functions for virtual host server configuration and operation.

This module provides core functionality for:
- Logging setup with structured JSON output
- Event loop setup and optimization with uvloop
- Server kwargs generation for different platforms
- Client connection error handling

The utilities in this module focus on performance optimization
and proper error handling for production environments.
"""

import sys
import socket
import asyncio
import logging
from typing import Dict, Any, Optional

from pythonjsonlogger.json import JsonFormatter

LOGGER_NAME = "vhost_server"

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

logger = logging.getLogger(LOGGER_NAME)


class ServerConfigError(Exception):
    """Custom exception for server configuration errors"""

    pass


def configure_logging(level=logging.INFO, json_logs: bool = True, log_file=None):
    """Configure logging for the virtual host server.

    Args:
        level: Logging level (default: INFO)
        json_logs: Emit one JSON object per record instead of plain text
        log_file: Optional path to log file

    Returns:
        Configured logger instance

    Calling this again replaces the handlers installed by a previous call,
    so the CLI can reconfigure after the config file has been read.
    """
    log = logging.getLogger(LOGGER_NAME)
    log.setLevel(level)
    log.propagate = False

    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()

    if json_logs:
        formatter = JsonFormatter(JSON_FORMAT)
    else:
        formatter = logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    log.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        log.addHandler(file_handler)

    return log


def setup_uvloop() -> None:
    """Configure uvloop for improved event loop performance.

    uvloop is only installed on POSIX platforms, so Windows keeps the
    default asyncio event loop policy.

    Raises:
        ServerConfigError: If uvloop setup fails
    """
    if sys.platform == "win32":
        logger.info("Using default asyncio event loop on Windows")
        return

    import uvloop

    try:
        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
        logger.info("Using uvloop event loop")
    except Exception as e:
        logger.error(f"Failed to setup uvloop: {e}")
        raise ServerConfigError("Failed to initialize event loop") from e


def get_server_kwargs() -> Dict[str, Any]:
    """Get platform-specific server configuration arguments.

    Returns:
        Dict containing asyncio.start_server kwargs for the current platform.
    """
    kwargs: Dict[str, Any] = {
        "reuse_address": True,
        "backlog": 2048,
        "start_serving": True,
    }

    return kwargs


def configure_client_socket(writer: asyncio.StreamWriter) -> None:
    """Apply per-connection TCP options to an accepted client socket."""
    sock = writer.get_extra_info("socket")
    if sock is None:
        return
    try:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    except OSError as e:
        logger.debug(f"Failed to set TCP_NODELAY: {e}")


def format_client(writer: asyncio.StreamWriter) -> str:
    """Return ``host:port`` of the peer, or ``unknown``."""
    peer = writer.get_extra_info("peername")
    if peer:
        return f"{peer[0]}:{peer[1]}"
    return "unknown"


async def close_writer(
    writer: asyncio.StreamWriter,
    log: Optional[logging.Logger] = None,
) -> None:
    """Close a client connection, logging instead of raising on failure.

    Args:
        writer: StreamWriter for the client connection
        log: Optional logger instance, module logger if None

    Notes:
        Uses transport.abort() as final fallback to ensure resources
        are released when a graceful close fails.
    """
    if log is None:
        log = logger

    try:
        if not writer.is_closing():
            writer.close()
        await writer.wait_closed()
    except (ConnectionError, OSError) as e:
        log.debug(f"Error while closing connection: {e}")
        transport = getattr(writer, "transport", None)
        if transport is not None:
            transport.abort()
