"""
Connection Handler - one task per applet client.

Lifecycle: UNBOUND -> BOUND(slot) -> TERMINATED.

The handler reads raw bytes, reassembles commands, checks that they target
the slot this connection created, applies them to the SlotTable and writes
one status byte per decoded command. Any terminating path (disconnect,
protocol violation, unexpected error) clears the bound slot and ends only
this connection; nothing propagates to the accept loop or the compositor.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from .applet import AppletError
from .protocol import (
    Command,
    CommandDecodeError,
    CommandFramer,
    InvalidTextError,
    Opcode,
    StatusCode,
    READ_SIZE,
    STATUS_SLOT,
    decode_command,
)
from .slot_table import SlotTable, SlotTableError, StatusBarGridError

logger = logging.getLogger(__name__)

# Read errors that mean the peer went away rather than a failed read
DISCONNECT_ERRORS = (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)


class ConnectionState(Enum):
    UNBOUND = "unbound"
    BOUND = "bound"
    TERMINATED = "terminated"


class ConnectionHandler:
    """
    Serves one client stream.

    Args:
        reader: Stream to read requests from
        writer: Stream to write status bytes to
        slot_table: Shared slot table
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        slot_table: SlotTable,
    ):
        self.reader = reader
        self.writer = writer
        self.slot_table = slot_table
        self.framer = CommandFramer()
        self.bound_slot: Optional[int] = None
        self.state = ConnectionState.UNBOUND
        self.peer = writer.get_extra_info("peername")

    async def run(self) -> None:
        """Serve the connection until it ends; never raises."""
        try:
            await self._serve()
        except DISCONNECT_ERRORS as e:
            logger.info(f"{self.peer} disconnected abruptly: {e}")
        except Exception:
            logger.exception(f"Unexpected error serving {self.peer}")
            await self._send_quietly(StatusCode.INTERNAL_ERROR)
        finally:
            self._release_slot()
            await self._close()

    async def _serve(self) -> None:
        while True:
            try:
                data = await self.reader.read(READ_SIZE)
            except DISCONNECT_ERRORS:
                raise
            except OSError as e:
                logger.error(f"Failed read from {self.peer}: {e}")
                await self._terminate(StatusCode.READ_FAILED)
                return

            if not data:
                logger.info(f"{self.peer} closed the connection")
                return

            try:
                self.framer.feed(data)
            except InvalidTextError as e:
                logger.warning(f"{self.peer}: {e}")
                await self._terminate(StatusCode.INVALID_UTF8)
                return

            for candidate in self.framer.commands():
                status = self.process(candidate)
                if status.fatal:
                    await self._terminate(status)
                    return
                await self._respond(status)

            if self.framer.discard_oversized():
                await self._respond(StatusCode.MALFORMED_COMMAND)

    def process(self, text: str) -> StatusCode:
        """Decode and dispatch one candidate command string."""
        try:
            command = decode_command(text)
        except CommandDecodeError as e:
            logger.warning(f"{self.peer}: {e}")
            return StatusCode.MALFORMED_COMMAND
        return self.dispatch(command)

    def dispatch(self, command: Command) -> StatusCode:
        """
        Validate ownership and apply a command to the slot table.

        Synchronous: the slot table is never touched across an await.

        Returns:
            StatusCode: Response for the client
        """
        slot = command.slot
        if not 0 <= slot < len(self.slot_table):
            logger.warning(f"{self.peer}: invalid applet number {slot}")
            return StatusCode.INVALID_SLOT

        if self.bound_slot is not None and slot != self.bound_slot:
            logger.warning(
                f"{self.peer} attempted to modify applet {slot}, owns applet {self.bound_slot}"
            )
            return StatusCode.SLOT_NOT_OWNED

        try:
            if command.opcode is Opcode.CREATE_APPLET:
                kind = self.slot_table.try_create(slot, command.parameters)
                self.bound_slot = slot
                self.state = ConnectionState.BOUND
                logger.info(
                    f"{self.peer} created applet {slot} ({kind.name.lower()} separator)"
                )
                return StatusCode.OK

            if slot == STATUS_SLOT and command.opcode is Opcode.UPDATE_GRID:
                raise StatusBarGridError("Attempted to update applet 0 grid")

            if self.bound_slot is None and self.slot_table.is_occupied(slot):
                logger.warning(
                    f"{self.peer} attempted to modify applet {slot} it did not create"
                )
                return StatusCode.SLOT_NOT_OWNED

            self.slot_table.apply_command(slot, command)
            return StatusCode.OK

        except SlotTableError as e:
            logger.warning(f"{self.peer}: {e}")
            return e.status
        except AppletError as e:
            logger.info(f"{self.peer}: applet {slot} command failed: {e}")
            return StatusCode.APPLET_COMMAND_FAILED

    async def _respond(self, status: StatusCode) -> None:
        self.writer.write(status.to_bytes())
        await self.writer.drain()

    async def _terminate(self, status: StatusCode) -> None:
        # free the slot before the client can see the fatal code
        self._release_slot()
        await self._respond(status)

    async def _send_quietly(self, status: StatusCode) -> None:
        if self.writer.is_closing():
            return
        try:
            await self._respond(status)
        except OSError as e:
            logger.debug(f"Could not send {status.value} to {self.peer}: {e}")

    def _release_slot(self) -> None:
        if self.bound_slot is not None:
            self.slot_table.clear(self.bound_slot)
            logger.info(f"Released applet {self.bound_slot} for {self.peer}")
            self.bound_slot = None
        self.state = ConnectionState.TERMINATED

    async def _close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error closing {self.peer}: {e}")

    def abort(self) -> None:
        """Close the transport; run() then finishes as a disconnect."""
        self.writer.close()
