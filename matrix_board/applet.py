"""
Applet - one independently owned region of the LED matrix.

An applet is a 9x10 brightness grid topped by a 9-pixel separator bar. The
separator policy is fixed when the applet is created; only "variable"
separators accept bar updates afterwards.

Pure state class - no I/O, no locking. The SlotTable owns applets and
guards them.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Sequence

import numpy as np

from .protocol import Command, Opcode


GRID_ROWS = 10
GRID_COLS = 9
BAR_WIDTH = GRID_COLS
BLOCK_ROWS = GRID_ROWS + 1

GRID_PARAMETERS = GRID_ROWS * GRID_COLS


class AppletError(Exception):
    """Base exception for applet-level command failures."""

    pass


class InvalidLengthError(AppletError):
    """Raised when a command carries the wrong number of parameters."""

    pass


class SeparatorNotVariableError(AppletError):
    """Raised when a bar update targets a fixed separator."""

    pass


class AlreadyExistsError(AppletError):
    """Raised when a creation command is applied to a live applet."""

    pass


class InvalidSeparatorError(ValueError):
    """Raised when creation parameters don't name a separator kind."""

    pass


class SeparatorKind(IntEnum):
    """Separator bar policy, numbered as sent in CreateApplet."""

    EMPTY = 0
    SOLID = 1
    DOTTED = 2
    VARIABLE = 3

    def initial_bar(self) -> np.ndarray:
        """Return the separator bar this kind starts with."""
        if self is SeparatorKind.SOLID:
            return np.full(BAR_WIDTH, 255, dtype=np.uint8)
        if self is SeparatorKind.DOTTED:
            bar = np.zeros(BAR_WIDTH, dtype=np.uint8)
            bar[::2] = 255
            return bar
        # EMPTY, and VARIABLE until its first update
        return np.zeros(BAR_WIDTH, dtype=np.uint8)

    @classmethod
    def from_parameters(cls, parameters: Sequence[int]) -> "SeparatorKind":
        """
        Parse the CreateApplet parameter list.

        Args:
            parameters: Raw command parameters, expected to hold one value 0-3

        Returns:
            SeparatorKind: The requested kind

        Raises:
            InvalidSeparatorError: If there isn't exactly one valid value
        """
        if len(parameters) != 1:
            raise InvalidSeparatorError(
                f"CreateApplet expects 1 parameter, got {len(parameters)}"
            )
        try:
            return cls(parameters[0])
        except ValueError as e:
            raise InvalidSeparatorError(
                f"Invalid separator value {parameters[0]}"
            ) from e


class Applet:
    """
    Brightness state for one applet slot.

    Attributes:
        separator_kind: Fixed separator policy
        grid: (10, 9) uint8 array, row-major, top row first
        separator: (9,) uint8 array
    """

    def __init__(self, separator_kind: SeparatorKind):
        self.separator_kind = SeparatorKind(separator_kind)
        self.grid = np.zeros((GRID_ROWS, GRID_COLS), dtype=np.uint8)
        self.separator = self.separator_kind.initial_bar()

    def apply(self, command: Command) -> None:
        """
        Apply an update command in place.

        State is only modified when the command is fully valid.

        Raises:
            InvalidLengthError: Wrong parameter count for the opcode
            SeparatorNotVariableError: UpdateBar on a fixed separator
            AlreadyExistsError: CreateApplet sent to an existing applet
        """
        if command.opcode is Opcode.UPDATE_GRID:
            self._update_grid(command.parameters)
        elif command.opcode is Opcode.UPDATE_BAR:
            self._update_bar(command.parameters)
        elif command.opcode is Opcode.CREATE_APPLET:
            raise AlreadyExistsError("Applet cannot create a new applet")
        else:
            raise AppletError(f"Unsupported opcode {command.opcode}")

    def _update_grid(self, parameters: Sequence[int]) -> None:
        if len(parameters) != GRID_PARAMETERS:
            raise InvalidLengthError(
                f"UpdateGrid expects {GRID_PARAMETERS} parameters, got {len(parameters)}"
            )
        self.grid[:, :] = np.asarray(parameters, dtype=np.uint8).reshape(
            (GRID_ROWS, GRID_COLS)
        )

    def _update_bar(self, parameters: Sequence[int]) -> None:
        if self.separator_kind is not SeparatorKind.VARIABLE:
            raise SeparatorNotVariableError(
                f"Separator is {self.separator_kind.name.lower()}, not variable"
            )
        if len(parameters) != BAR_WIDTH:
            raise InvalidLengthError(
                f"UpdateBar expects {BAR_WIDTH} parameters, got {len(parameters)}"
            )
        self.separator[:] = np.asarray(parameters, dtype=np.uint8)

    def compose_block(self) -> np.ndarray:
        """
        Return an (11, 9) copy: separator bar on row 0, grid on rows 1-10.
        """
        block = np.empty((BLOCK_ROWS, GRID_COLS), dtype=np.uint8)
        block[0] = self.separator
        block[1:] = self.grid
        return block

    def __repr__(self) -> str:
        return f"Applet(separator={self.separator_kind.name.lower()})"
