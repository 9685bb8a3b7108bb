"""
Accept loop: listens for applet clients and spawns a ConnectionHandler per
accepted stream.
"""

import asyncio
import logging
from typing import Optional, Set

from .connection import ConnectionHandler
from .slot_table import SlotTable

logger = logging.getLogger(__name__)


class BoardServer:
    """
    TCP server for applet clients.

    A handler's failure ends only its own connection; the listener keeps
    accepting.
    """

    def __init__(self, slot_table: SlotTable, host: str = "127.0.0.1", port: int = 0):
        self.slot_table = slot_table
        self.host = host
        self.port = port
        self._server: Optional[asyncio.Server] = None
        self._handlers: Set[ConnectionHandler] = set()

    @property
    def active_connections(self) -> int:
        return len(self._handlers)

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self) -> None:
        """Bind the listening socket. With port 0 the bound port is stored in self.port."""
        self._server = await asyncio.start_server(
            self._handle_connection, self.host, self.port
        )
        self.port = self._server.sockets[0].getsockname()[1]
        logger.info(f"Listening for applets on {self.host}:{self.port}")

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        await self._server.serve_forever()

    async def stop(self) -> None:
        """Stop accepting, close every client and wait for handlers to finish."""
        if self._server is None:
            return
        self._server.close()
        for handler in list(self._handlers):
            handler.abort()
        await self._server.wait_closed()
        self._server = None
        logger.info("Applet server stopped")

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        handler = ConnectionHandler(reader, writer, self.slot_table)
        self._handlers.add(handler)
        logger.info(f"Connected to {handler.peer}")
        try:
            await handler.run()
        finally:
            self._handlers.discard(handler)
            logger.info(f"Connection to {handler.peer} ended")
