"""
Cross-cutting validation logic for the matrix board.

Type-local invariants stay in the config dataclasses' __post_init__ methods.
Rules validated here span several objects:
- Brightness/scale matrix shape and value range
- Listening sockets that would collide with each other
"""

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .config import BoardConfig


class ValidationError(ValueError):
    """Base exception for validation errors."""
    pass


class MatrixValidationError(ValidationError):
    """Raised when a brightness or scale matrix is malformed."""
    pass


class ConfigValidationError(ValidationError):
    """Raised when the board configuration is inconsistent."""
    pass


def validate_port(port: int, name: str = "port") -> None:
    """
    Validate a TCP port number. 0 lets the OS pick a free port.

    Raises:
        ConfigValidationError: If the port is out of range
    """
    if not (0 <= port <= 0xFFFF):
        raise ConfigValidationError(f"{name} must be 0-65535, got {port}")


def validate_matrix(matrix, rows: int, cols: int) -> np.ndarray:
    """
    Validate a full-panel matrix and return it as a uint8 array.

    Cross-cutting rule: everything handed to the display must match the
    panel geometry and fit in a byte per pixel.

    Args:
        matrix: Array-like of shape (rows, cols)
        rows: Expected panel height
        cols: Expected panel width

    Returns:
        np.ndarray: uint8 copy of the matrix

    Raises:
        MatrixValidationError: If shape or values are out of range
    """
    arr = np.asarray(matrix)
    if arr.shape != (rows, cols):
        raise MatrixValidationError(
            f"Matrix shape {arr.shape} != expected {(rows, cols)}"
        )
    if arr.size and (arr.min() < 0 or arr.max() > 255):
        raise MatrixValidationError(
            f"Matrix values must be 0-255, got {arr.min()}..{arr.max()}"
        )
    return arr.astype(np.uint8, copy=True)


def validate_board_config(config: "BoardConfig") -> None:
    """
    Validate cross-cutting rules for a complete board configuration.

    Raises:
        ConfigValidationError: If the server and status API would share a socket
    """
    server = config.server
    status = config.status
    if (
        status.enabled
        and server.port != 0
        and status.port == server.port
        and status.host == server.host
    ):
        raise ConfigValidationError(
            f"Status API and applet server both bind {server.host}:{server.port}"
        )
