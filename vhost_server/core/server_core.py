"""
Core virtual host server implementation providing asynchronous request handling.

This module implements the listening server with features including:
- Asynchronous I/O using asyncio, one task per connection
- Graceful shutdown on SIGINT/SIGTERM
- Tracking of in-flight connections for draining
- Startup banner listing the configured sites
"""

import asyncio
import signal
import sys
from typing import List, Optional, Set, Tuple

from .config import ServerConfig, SiteRegistry
from .request_handler import ConnectionHandler
from .server_utils import (
    close_writer, configure_client_socket, get_server_kwargs, logger, setup_uvloop,
)


class VirtualHostServer:
    """Asynchronous HTTP server routing requests to virtual hosts.

    Attributes:
        registry: Read-only site registry shared by all connections
        config: Listener and runtime settings
    """

    def __init__(self, registry: SiteRegistry, config: Optional[ServerConfig] = None):
        self.registry = registry
        self.config = config or ServerConfig()
        self._server: Optional[asyncio.AbstractServer] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._active_connections: Set[asyncio.Task] = set()
        self._signals: List[int] = []

    def run(self) -> None:
        """Run the server until a shutdown signal arrives."""
        setup_uvloop()
        asyncio.run(self.serve())

    async def start(self) -> Tuple[str, int]:
        """Bind the listening socket and begin accepting connections.

        Returns:
            The bound (host, port); port is useful when 0 was configured

        Raises:
            OSError: If server fails to bind to specified host/port
        """
        self._shutdown_event = asyncio.Event()
        self._server = await asyncio.start_server(
            self._handle_client,
            self.config.host,
            self.config.port,
            **get_server_kwargs()
        )

        host, port = self.config.host, self.config.port
        if self._server.sockets:
            address = self._server.sockets[0].getsockname()
            host, port = address[0], address[1]

        self._log_banner(port)
        logger.info(f"Server started on http://{host}:{port}")
        return host, port

    async def serve(self) -> None:
        """Start the server and wait for shutdown."""
        await self.start()
        self._install_signal_handlers()
        try:
            await self._shutdown_event.wait()
        finally:
            self._remove_signal_handlers()
            await self.shutdown()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop accepting connections and drain the in-flight ones.

        Args:
            timeout: Seconds to wait for active connections, defaults to
                the configured shutdown_timeout
        """
        if timeout is None:
            timeout = self.config.shutdown_timeout

        self.request_shutdown()

        server, self._server = self._server, None
        if server is None:
            return

        logger.info("Initiating graceful shutdown...")
        server.close()

        # drain before wait_closed(), which waits for every connection on 3.12+
        tasks = [task for task in self._active_connections if not task.done()]
        if tasks:
            logger.info(f"Waiting for {len(tasks)} active connections to complete...")
            done, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                logger.warning(f"Force closing {len(pending)} connections that didn't complete in time")
                for task in pending:
                    task.cancel()
                await asyncio.wait(pending, timeout=5.0)

        await server.wait_closed()
        logger.info("Server shutdown complete")

    async def _handle_client(self, reader: asyncio.StreamReader,
                             writer: asyncio.StreamWriter) -> None:
        if self._shutdown_event is not None and self._shutdown_event.is_set():
            await close_writer(writer)
            return

        configure_client_socket(writer)

        task = asyncio.current_task()
        if task is not None:
            self._active_connections.add(task)
        try:
            handler = ConnectionHandler(self.registry, self.config)
            await handler.handle_connection(reader, writer)
        except asyncio.CancelledError:
            await close_writer(writer)
            raise
        except Exception:
            logger.exception("Connection handler raised an unexpected exception")
            await close_writer(writer)
        finally:
            if task is not None:
                self._active_connections.discard(task)

    def _install_signal_handlers(self) -> None:
        if sys.platform == "win32":
            return
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
                self._signals.append(sig)
            except (NotImplementedError, RuntimeError) as e:
                logger.debug(f"Cannot install handler for {sig!r}: {e}")

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        while self._signals:
            loop.remove_signal_handler(self._signals.pop())

    def _log_banner(self, port: int) -> None:
        logger.info("Available sites:")
        for site in self.registry:
            logger.info(f"  http://{site.hostname}:{port} ({site.name}) -> {site.document_root}")
        default = self.registry.default_site
        if default is not None:
            logger.info(f"Unknown hosts are served by {default.hostname}")
        logger.info(f"Request logging: {'enabled' if self.config.log_requests else 'disabled'}")
