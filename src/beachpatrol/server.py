"""Asyncio server for beachpatrol.

Owns the transport endpoint (a Unix domain socket, or a named pipe on
Windows) and runs the read -> resolve -> dispatch -> respond -> close cycle for
every connection.  ``run_server`` ties it to the browser session and to the
termination signals; cleanup happens exactly once, whichever trigger fires
first.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from beachpatrol.active_page import ActivePageTracker
from beachpatrol.browser import BrowserSession
from beachpatrol.config import BeachpatrolConfig
from beachpatrol.dispatch import CommandDispatcher, CommandResolver, ExecutionContext
from beachpatrol.paths import (
    SERVICE_NAME,
    get_commands_dir,
    get_endpoint,
    get_log_path,
    uses_unix_socket,
)
from beachpatrol.protocol import (
    MALFORMED_MESSAGE,
    CommandRequest,
    ProtocolError,
    decode_request,
    format_response,
    try_decode_request,
)

logger = logging.getLogger("beachpatrol.server")

_READ_CHUNK_SIZE = 65536
_TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


# ---------------------------------------------------------------------------
# CommandServer
# ---------------------------------------------------------------------------


class CommandServer:
    """Listens on the endpoint and answers one command per connection."""

    def __init__(
        self,
        dispatcher: CommandDispatcher,
        endpoint: str | None = None,
        max_message_size: int = 1024 * 1024,
    ) -> None:
        self.dispatcher = dispatcher
        self.endpoint: str = endpoint or get_endpoint()
        self.max_message_size = max_message_size
        self.using_unix_socket: bool = uses_unix_socket()

        self._server: asyncio.AbstractServer | None = None
        self._pipe_servers: list[Any] = []
        self._stopped = asyncio.Event()
        self._shutdown_started = False
        self._shutdown_task: asyncio.Future | None = None
        self._signal_handlers: list[int] = []

    # -- Startup -------------------------------------------------------------

    async def start(self) -> None:
        """Bind the endpoint.  Raises ``OSError`` if that is not possible."""
        if self.using_unix_socket:
            socket_path = Path(self.endpoint)
            socket_path.parent.mkdir(parents=True, exist_ok=True)
            # Stale socket from an unclean shutdown
            if socket_path.exists() or socket_path.is_symlink():
                logger.info(f"Removing stale socket {socket_path}")
                socket_path.unlink()
            self._server = await asyncio.start_unix_server(
                self.handle_client, path=str(socket_path)
            )
        else:
            await self._start_pipe_server()
        logger.info(f"{SERVICE_NAME} listening on {self.endpoint}")

    async def _start_pipe_server(self) -> None:
        loop = asyncio.get_running_loop()

        def _protocol_factory() -> asyncio.StreamReaderProtocol:
            reader = asyncio.StreamReader()
            return asyncio.StreamReaderProtocol(reader, self.handle_client)

        # Only the proactor event loop (the Windows default) serves pipes
        self._pipe_servers = await loop.start_serving_pipe(  # type: ignore[attr-defined]
            _protocol_factory, self.endpoint
        )

    # -- Per-connection cycle ------------------------------------------------

    async def handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        try:
            try:
                request = await self.read_request(reader)
            except ProtocolError as exc:
                logger.warning(f"Malformed command message: {exc}")
                response = MALFORMED_MESSAGE
            else:
                response = await self.dispatcher.dispatch(request)

            writer.write(format_response(response))
            await writer.drain()
        except Exception:
            logger.exception("Unhandled error in handle_client")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    async def read_request(self, reader: asyncio.StreamReader) -> CommandRequest:
        """Read until one complete message has arrived or the peer half-closes."""
        buffer = b""
        while True:
            chunk = await reader.read(_READ_CHUNK_SIZE)
            if not chunk:
                return decode_request(buffer)
            buffer += chunk
            if len(buffer) > self.max_message_size:
                raise ProtocolError(
                    f"Message exceeds {self.max_message_size} bytes"
                )
            request = try_decode_request(buffer)
            if request is not None:
                return request

    # -- Lifecycle -----------------------------------------------------------

    def install_signal_handlers(self) -> None:
        """Shut down on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        for sig in _TERMINATION_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
                self._signal_handlers.append(sig)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler
                signal.signal(
                    sig,
                    lambda signum, _frame: loop.call_soon_threadsafe(
                        self._on_signal, signum
                    ),
                )

    def remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._signal_handlers:
            loop.remove_signal_handler(sig)
        self._signal_handlers.clear()

    def _on_signal(self, signum: int) -> None:
        logger.info(f"Received termination signal: {signal.Signals(signum).name}")
        self.request_shutdown()

    def request_shutdown(self) -> asyncio.Future:
        """Schedule :meth:`shutdown` from a synchronous callback."""
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(self.shutdown())
        return self._shutdown_task

    async def shutdown(self) -> None:
        """Stop accepting connections and remove the socket file.

        Runs at most once.  In-flight commands are not cancelled.
        """
        if self._shutdown_started:
            return
        self._shutdown_started = True
        logger.info("Cleaning up and shutting down...")

        if self._server is not None:
            self._server.close()
            logger.info("  - Server closed")
        for pipe_server in self._pipe_servers:
            pipe_server.close()

        if self.using_unix_socket:
            socket_path = Path(self.endpoint)
            try:
                socket_path.unlink()
                logger.info(f"  - Socket file {socket_path} removed")
            except FileNotFoundError:
                pass

        self._stopped.set()

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    @property
    def is_shut_down(self) -> bool:
        return self._stopped.is_set()


# ---------------------------------------------------------------------------
# Server entry point
# ---------------------------------------------------------------------------


async def run_server(config: BeachpatrolConfig) -> None:
    """Launch the browser, serve commands until a termination trigger fires."""
    tracker = ActivePageTracker()
    session = BrowserSession(config, tracker)
    try:
        await session.launch()

        context = ExecutionContext(
            context=session.context,
            tracker=tracker,
            download_dir=session.download_dir,
        )
        resolver = CommandResolver(get_commands_dir(config.commands_dir))
        dispatcher = CommandDispatcher(resolver, context)
        server = CommandServer(dispatcher, max_message_size=config.max_message_size)

        try:
            await server.start()
        except OSError as exc:
            logger.error(f"Cannot listen on {server.endpoint}: {exc}")
            raise

        session.on_close(server.request_shutdown)
        server.install_signal_handlers()
        try:
            await server.wait_stopped()
        finally:
            server.remove_signal_handlers()
    finally:
        await session.close()
    logger.info("Server stopped")


def _setup_logging(level: str) -> None:
    """Log to stdout and to ``beachpatrol.log`` in the data directory."""
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root = logging.getLogger()
    root.setLevel(level.upper())

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(get_log_path(), mode="a", encoding="utf-8")
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)


def start_server(config: BeachpatrolConfig) -> None:
    """Blocking entry point used by the ``beachpatrol`` command."""
    _setup_logging(config.log_level)
    try:
        asyncio.run(run_server(config))
    except Exception:
        logger.exception("Server crashed")
        raise
