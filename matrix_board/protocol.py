"""
Applet wire protocol.

Clients send JSON objects over TCP, each terminated by its closing brace:

    {"opcode": "UpdateBar", "app_num": 1, "parameters": [0, 255, 0, 255, 0, 255, 0, 255, 0]}

Requests may arrive coalesced in one read or split over several reads. The
server answers every decoded request with one unsigned status byte (see
StatusCode); there is no response body.

Pure logic - decoding, framing and status codes. No I/O.
"""

import codecs
import logging
from enum import Enum, IntEnum
from typing import Annotated, Iterator, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

# Bytes requested per socket read
READ_SIZE = 8192
# Longest run of text kept while waiting for a closing brace
MAX_PENDING_CHARS = 8192

COMMAND_END = "}"
TERMINATOR = "\0"

SLOT_COUNT = 4
STATUS_SLOT = 0


class StatusCode(IntEnum):
    """Single-byte response codes."""

    OK = 0
    READ_FAILED = 10
    INVALID_UTF8 = 20
    MALFORMED_COMMAND = 21
    INVALID_SLOT = 30
    SLOT_NOT_OWNED = 31
    STATUS_BAR_GRID = 32
    APPLET_COMMAND_FAILED = 33
    APPLET_EXISTS = 34
    NO_SUCH_APPLET = 35
    INVALID_SEPARATOR = 40
    INTERNAL_ERROR = 255

    @property
    def fatal(self) -> bool:
        """Whether the connection is closed after sending this code."""
        return self not in _NON_FATAL

    def to_bytes(self) -> bytes:
        return bytes([self.value])


_NON_FATAL = frozenset(
    {
        StatusCode.OK,
        StatusCode.MALFORMED_COMMAND,
        StatusCode.APPLET_COMMAND_FAILED,
        StatusCode.NO_SUCH_APPLET,
    }
)


class Opcode(str, Enum):
    CREATE_APPLET = "CreateApplet"
    UPDATE_GRID = "UpdateGrid"
    UPDATE_BAR = "UpdateBar"

    def __str__(self) -> str:
        return self.value


Brightness = Annotated[int, Field(ge=0, le=255)]


class Command(BaseModel):
    """
    One decoded client request.

    Decoding is strict: numbers must be JSON integers and every parameter
    must fit in a byte. Unknown fields are ignored.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    opcode: Opcode
    app_num: int
    parameters: List[Brightness]

    @property
    def slot(self) -> int:
        return self.app_num


class ProtocolError(Exception):
    """Base exception for wire-level decode failures."""

    pass


class InvalidTextError(ProtocolError):
    """Raised when received bytes are not valid UTF-8."""

    pass


class CommandDecodeError(ProtocolError):
    """Raised when a candidate string is not a valid command."""

    pass


def decode_command(text: str) -> Command:
    """
    Decode one command object.

    Args:
        text: Candidate JSON text ending with a closing brace

    Returns:
        Command: The validated command

    Raises:
        CommandDecodeError: If the text is not a well-formed command
    """
    try:
        return Command.model_validate_json(text)
    except ValidationError as e:
        raise CommandDecodeError(
            f"Could not parse command {text!r}: {e.error_count()} error(s)"
        ) from e


def encode_command(command: Command) -> bytes:
    """Encode a command the way clients put it on the wire."""
    return command.model_dump_json().encode("utf-8")


class CommandFramer:
    """
    Reassembles command strings from a byte stream.

    Bytes are decoded incrementally, so a multibyte character split across
    two reads is not an error. Text after a NUL in a read is dropped.
    Incomplete trailing text is kept until a later read completes it.
    """

    def __init__(self, max_pending: int = MAX_PENDING_CHARS):
        self.max_pending = max_pending
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, data: bytes) -> None:
        """
        Append one read's worth of bytes.

        Raises:
            InvalidTextError: If the bytes are not valid UTF-8
        """
        try:
            text = self._decoder.decode(data)
        except UnicodeDecodeError as e:
            raise InvalidTextError(f"Could not parse stream as UTF-8: {e}") from e
        self._pending += text.split(TERMINATOR, 1)[0]

    def commands(self) -> Iterator[str]:
        """Yield each complete candidate, up to and including its closing brace."""
        while True:
            end = self._pending.find(COMMAND_END)
            if end < 0:
                return
            candidate = self._pending[: end + 1]
            self._pending = self._pending[end + 1 :]
            yield candidate

    def discard_oversized(self) -> bool:
        """
        Drop pending text that grew past max_pending without a closing brace.

        Returns:
            bool: True if text was discarded
        """
        if len(self._pending) <= self.max_pending:
            return False
        logger.warning(
            f"Discarding {len(self._pending)} characters with no closing brace"
        )
        self._pending = ""
        return True
