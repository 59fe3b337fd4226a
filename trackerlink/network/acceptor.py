import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Iterable

from trackerlink.common.errors import NoAvailablePortError

logger = logging.getLogger(__name__)

LISTEN_PORTS = range(6881, 6890)

ConnectionHandler = Callable[
    [asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]
]


class ConnectionAcceptor:
    """Listens for inbound peers on the first free port of the BitTorrent range.

    Each accepted connection is passed to the handler as a
    ``(reader, writer)`` pair, in its own task; the handler owns the
    stream from then on. ``closed`` is set when the accept loop ends.
    """

    __slots__ = (
        "host",
        "ports",
        "port",
        "closed",
        "_server",
        "_serve_task",
        "_handler",
    )

    def __init__(self, host: str | None = None, ports: Iterable[int] = LISTEN_PORTS):
        self.host = host
        self.ports = tuple(ports)
        self.port: int | None = None
        self.closed = asyncio.Event()
        self._server: asyncio.Server | None = None
        self._serve_task: asyncio.Task | None = None
        self._handler: ConnectionHandler | None = None

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self, on_accept: ConnectionHandler) -> int:
        if self._server is not None:
            raise RuntimeError("Acceptor already started")
        if not inspect.iscoroutinefunction(on_accept):
            raise TypeError("on_accept must be a coroutine function")

        self._handler = on_accept
        for port in self.ports:
            logger.debug(f"Attempting to listen on port {port}")
            try:
                self._server = await asyncio.start_server(
                    self._on_connection, self.host, port
                )
            except OSError as e:
                logger.debug(f"Port {port} unavailable: {e}")
                continue
            self.port = self._server.sockets[0].getsockname()[1]
            break
        else:
            raise NoAvailablePortError(
                f"Unable to bind to port between {self.ports[0]} and {self.ports[-1]}"
                if self.ports
                else "No ports to bind to"
            )

        logger.info(f"Listening on port {self.port}")
        self._serve_task = asyncio.create_task(
            self._server.serve_forever(), name=f"acceptor-{self.port}"
        )
        self._serve_task.add_done_callback(self._on_serve_done)
        return self.port

    async def _on_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ):
        peername = writer.get_extra_info("peername")
        logger.info(f"Accepted inbound connection from {peername}")
        try:
            await self._handler(reader, writer)
        except Exception as e:
            logger.error(
                f"Connection handler failed for {peername}: {e}", exc_info=True
            )
            writer.close()

    def _on_serve_done(self, task: asyncio.Task):
        if task.cancelled():
            logger.info(f"Accept loop on port {self.port} stopped")
        elif task.exception() is not None:
            logger.error(
                f"Accept loop on port {self.port} terminated: {task.exception()}"
            )
        self.closed.set()

    async def close(self):
        """Stop accepting. Connections already handed off stay open."""
        if self._server is None:
            return
        self._server.close()
        if not self._serve_task.done():
            # let serve_forever observe the close before cancelling it,
            # otherwise it keeps waiting on connections owned by handlers
            await asyncio.sleep(0)
            self._serve_task.cancel()
        self.closed.set()

    async def wait_closed(self):
        await self.closed.wait()
