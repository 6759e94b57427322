"""
Per-connection request handling.

This module provides the connection dispatcher including:
- Header framing with size and idle timeout limits
- Request parsing and virtual host routing
- File serving and error page selection
- Response writing and unconditional connection close
- Structured access logging
"""

import asyncio
import enum
import time
import uuid
from typing import Optional, Tuple

from .config import ServerConfig, SiteRegistry
from .http_parser import HTTPParserError, HTTPRequest, find_header_terminator, parse_request
from .response import FALLBACK_RESPONSE, ServeResult, build_response
from .server_utils import close_writer, format_client, logger
from vhost_server.features.error_pages import render_error_page
from vhost_server.features.virtual_host import VirtualHost

ALLOWED_METHOD = "GET"
READ_CHUNK_SIZE = 8192


class ConnectionState(enum.Enum):
    AWAITING_HEADERS = "awaiting_headers"
    PROCESSING = "processing"
    RESPONDING = "responding"
    CLOSED = "closed"


class HeaderTooLarge(Exception):
    """Request head exceeded the configured limit before the terminator."""
    pass


def _access_log_payload(request: Optional[HTTPRequest], status: int, length: int,
                        duration: float, client: str, request_id: str):
    return {
        "method": request.method if request else None,
        "path": request.path if request else None,
        "host": request.host if request else None,
        "status": status,
        "length": length,
        "duration_s": round(duration, 6),
        "client": client,
        "request_id": request_id,
    }


class ConnectionHandler:
    """Handles exactly one request on one connection.

    Attributes:
        registry: Shared read-only site registry
        config: Server configuration
        state: Current ConnectionState
    """

    def __init__(self, registry: SiteRegistry, config: Optional[ServerConfig] = None):
        self.registry = registry
        self.config = config or ServerConfig()
        self.state = ConnectionState.AWAITING_HEADERS

    async def handle_connection(self, reader: asyncio.StreamReader,
                                writer: asyncio.StreamWriter) -> None:
        """Read one request, answer it and close the connection."""
        client = format_client(writer)
        try:
            try:
                data = await self._read_request_head(reader)
            except HeaderTooLarge:
                logger.warning(f"Request head from {client} exceeded {self.config.max_header_bytes} bytes")
                await self._respond(writer, build_response(await render_error_page(None, 431)), client)
                return
            except asyncio.TimeoutError:
                logger.warning(f"Read timeout while receiving request from {client}")
                return
            except (ConnectionError, OSError) as e:
                logger.debug(f"Connection from {client} dropped while reading: {e}")
                return

            if data is None:
                logger.debug(f"Connection from {client} closed before request head was complete")
                return

            self.state = ConnectionState.PROCESSING
            start = time.monotonic()
            request_id = str(uuid.uuid4())
            request: Optional[HTTPRequest] = None
            try:
                request, result = await self.process_request(data)
                response = build_response(result)
                status = result.status
            except Exception:
                logger.exception(f"Error processing request from {client}")
                response = FALLBACK_RESPONSE
                status = 500

            await self._respond(writer, response, client)

            if self.config.log_requests:
                payload = _access_log_payload(request, status, len(response),
                                              time.monotonic() - start, client, request_id)
                logger.info(
                    f'{client} {payload["host"]} "{payload["method"]} {payload["path"]}" {status} {len(response)}',
                    extra=payload,
                )
        finally:
            self.state = ConnectionState.CLOSED
            await close_writer(writer)

    async def _read_request_head(self, reader: asyncio.StreamReader) -> Optional[bytes]:
        """Accumulate bytes until the header terminator.

        Returns:
            The buffered bytes, or None if the peer closed first

        Raises:
            HeaderTooLarge: If the buffer outgrows max_header_bytes
            asyncio.TimeoutError: If a single read idles past read_timeout
        """
        buffer = bytearray()
        while True:
            chunk = await asyncio.wait_for(reader.read(READ_CHUNK_SIZE),
                                           timeout=self.config.read_timeout)
            if not chunk:
                return None
            buffer += chunk
            head_end = find_header_terminator(buffer)
            if head_end != -1:
                if head_end > self.config.max_header_bytes:
                    raise HeaderTooLarge()
                return bytes(buffer)
            if len(buffer) > self.config.max_header_bytes:
                raise HeaderTooLarge()

    async def process_request(self, data: bytes) -> Tuple[Optional[HTTPRequest], ServeResult]:
        """Run the framed bytes through parsing, routing and serving.

        Every expected failure is turned into an error ServeResult.
        """
        try:
            request = parse_request(data)
        except HTTPParserError as e:
            logger.warning(f"Malformed HTTP request received: {e}")
            return None, await render_error_page(None, 500, str(e))

        site = self.registry.lookup(request.host)
        if site is None:
            logger.info(f"No site configured for host {request.host!r}")
            return request, await render_error_page(None, 404)

        virtual_host = VirtualHost(site)

        if request.method != ALLOWED_METHOD:
            return request, await virtual_host.serve_error_page(405)

        file_path = virtual_host.resolve_file_path(request.target)
        if file_path is None:
            return request, await virtual_host.serve_error_page(404)

        return request, await virtual_host.serve_file(file_path)

    async def _respond(self, writer: asyncio.StreamWriter, response: bytes, client: str) -> None:
        self.state = ConnectionState.RESPONDING
        try:
            writer.write(response)
            await writer.drain()
        except (ConnectionError, OSError) as e:
            logger.warning(f"Failed to write response to {client}: {e}")
