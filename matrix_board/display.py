"""
Display Driver I/O Boundary

This module talks to the 9x34 LED matrix module. Brightness (PWM) and scale
matrices are staged with set_* calls and sent to the module with commit_*
calls, one serial frame per commit:

    [0x32, 0xAC, command, <306 bytes, row-major>]

The frame layout and the command bytes (0x01 brightness, 0x02 scale) are
assumed, not taken from firmware documentation. Check them against the
module firmware before driving real hardware.

I/O boundary class - handles all hardware interaction and connection
management. MockMatrix stands in for the hardware in development and tests.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
from aioserial import AioSerial
from serial import SerialException

from .config import SerialConfig
from .validation import validate_matrix


logger = logging.getLogger(__name__)


MATRIX_ROWS = 34
MATRIX_COLS = 9

FRAME_MAGIC = bytes([0x32, 0xAC])
CMD_BRIGHTNESS = 0x01
CMD_SCALE = 0x02


def blank_matrix(value: int = 0) -> np.ndarray:
    """Full-panel uint8 matrix filled with one value."""
    return np.full((MATRIX_ROWS, MATRIX_COLS), value, dtype=np.uint8)


class MatrixConnectionError(Exception):
    """Raised when matrix module transport operations fail."""

    pass


class MatrixEncoder:
    """
    Pure frame encoder for the matrix module.

    All methods take a validated (34, 9) uint8 matrix and return the bytes
    to write; no I/O.
    """

    MAGIC = FRAME_MAGIC

    def encode(self, command: int, matrix: np.ndarray) -> bytes:
        return self.MAGIC + bytes([command & 0xFF]) + matrix.tobytes(order="C")

    def encode_brightness(self, matrix: np.ndarray) -> bytes:
        return self.encode(CMD_BRIGHTNESS, matrix)

    def encode_scale(self, matrix: np.ndarray) -> bytes:
        return self.encode(CMD_SCALE, matrix)


class MatrixDriver(ABC):
    """
    Abstract base class for the LED matrix module.

    set_brightness / set_scale only stage a matrix; nothing reaches the
    module until the matching commit call.
    """

    def __init__(self):
        self.encoder = MatrixEncoder()
        self._brightness = blank_matrix(0)
        self._scale = blank_matrix(255)

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the connection to the module.

        Raises:
            MatrixConnectionError: If connection fails
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection to the module."""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @abstractmethod
    async def _write_frame(self, frame: bytes) -> None:
        """Transport hook: send one encoded frame."""
        pass

    def set_brightness(self, matrix) -> None:
        """Stage a (34, 9) brightness matrix."""
        self._brightness = validate_matrix(matrix, MATRIX_ROWS, MATRIX_COLS)

    def set_scale(self, matrix) -> None:
        """Stage a (34, 9) scale matrix."""
        self._scale = validate_matrix(matrix, MATRIX_ROWS, MATRIX_COLS)

    @property
    def brightness(self) -> np.ndarray:
        return self._brightness.copy()

    @property
    def scale(self) -> np.ndarray:
        return self._scale.copy()

    async def commit_brightness(self) -> None:
        await self._write_frame(self.encoder.encode_brightness(self._brightness))

    async def commit_scale(self) -> None:
        await self._write_frame(self.encoder.encode_scale(self._scale))


class HardwareMatrix(MatrixDriver):
    """
    Matrix module on a USB serial port, using aioserial.
    """

    def __init__(self, config: SerialConfig):
        super().__init__()
        self.config = config
        self._serial: Optional[AioSerial] = None
        self._io_lock = asyncio.Lock()

    async def connect(self) -> None:
        async with self._io_lock:
            try:
                self._serial = AioSerial(
                    port=self.config.port,
                    baudrate=self.config.baudrate,
                    timeout=self.config.timeout,
                    write_timeout=self.config.timeout,
                )
                # Give the connection a moment to stabilize
                await asyncio.sleep(0.1)
                logger.info(f"Connected to LED matrix on {self.config.port}")

            except (SerialException, OSError, ValueError) as e:
                self._serial = None
                raise MatrixConnectionError(
                    f"LED matrix connect failed: {e}"
                ) from e

    async def disconnect(self) -> None:
        async with self._io_lock:
            if self._serial:
                try:
                    self._serial.close()
                    logger.info("Disconnected from LED matrix")
                except Exception as e:
                    raise MatrixConnectionError(
                        f"LED matrix disconnect failed: {e}"
                    ) from e
                finally:
                    self._serial = None

    def is_connected(self) -> bool:
        return self._serial is not None

    async def _write_frame(self, frame: bytes) -> None:
        async with self._io_lock:
            if not self._serial:
                raise MatrixConnectionError("Not connected to LED matrix")
            try:
                bytes_written = await self._serial.write_async(frame)
            except Exception as e:
                raise MatrixConnectionError(f"LED matrix write failed: {e}") from e
            if bytes_written != len(frame):
                raise MatrixConnectionError(
                    f"Short write: {bytes_written}/{len(frame)} bytes"
                )


class MockMatrix(MatrixDriver):
    """
    Mock matrix module for testing and development.

    Records the last committed matrices instead of writing to hardware.
    """

    def __init__(self, config: Optional[SerialConfig] = None):
        super().__init__()
        self.config = config or SerialConfig(mock=True)
        self._connected = False
        self.committed_brightness: Optional[np.ndarray] = None
        self.committed_scale: Optional[np.ndarray] = None
        self.frames_written = 0

    async def connect(self) -> None:
        self._connected = True
        logger.info(f"[MOCK] Connected to LED matrix {self.config.port}")

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("[MOCK] Disconnected from LED matrix")

    def is_connected(self) -> bool:
        return self._connected

    async def commit_brightness(self) -> None:
        await super().commit_brightness()
        self.committed_brightness = self._brightness.copy()

    async def commit_scale(self) -> None:
        await super().commit_scale()
        self.committed_scale = self._scale.copy()

    async def _write_frame(self, frame: bytes) -> None:
        if not self._connected:
            raise MatrixConnectionError("Not connected to mock LED matrix")
        self.frames_written += 1
        logger.debug(f"[MOCK] Wrote frame {self.frames_written} ({len(frame)} bytes)")
        await asyncio.sleep(0)


def create_driver(
    config: SerialConfig, use_hardware: Optional[bool] = None
) -> MatrixDriver:
    """
    Factory function to create the appropriate matrix driver.

    Args:
        config: Serial configuration
        use_hardware: Force hardware (True) or mock (False). If None, uses config.mock

    Returns:
        MatrixDriver: Hardware or mock implementation
    """
    if use_hardware is None:
        use_hardware = not config.mock

    if use_hardware:
        logger.info("Creating hardware LED matrix driver")
        return HardwareMatrix(config)
    else:
        logger.info("Creating mock LED matrix driver")
        return MockMatrix(config)
