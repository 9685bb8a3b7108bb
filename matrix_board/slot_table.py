"""
Slot Table - the single source of truth for which applets exist.

Four slots, each empty or holding one Applet, behind one lock. Slot 0 is the
status bar: it only ever shows its separator bar and refuses grid updates.

Every method holds the lock for a short synchronous section and never
awaits. No applet reference leaves this class; snapshots are copies.
"""

import logging
import threading
from typing import Dict, List, Optional, Sequence

import numpy as np

from .applet import Applet, SeparatorKind, InvalidSeparatorError
from .protocol import Command, Opcode, StatusCode, SLOT_COUNT, STATUS_SLOT

logger = logging.getLogger(__name__)


class SlotTableError(Exception):
    """Base exception for slot-level protocol violations."""

    status = StatusCode.INTERNAL_ERROR


class AppletExistsError(SlotTableError):
    """Raised when creating over an occupied slot."""

    status = StatusCode.APPLET_EXISTS


class InvalidSeparatorValueError(SlotTableError):
    """Raised when CreateApplet carries an unknown separator kind."""

    status = StatusCode.INVALID_SEPARATOR


class StatusBarGridError(SlotTableError):
    """Raised when a grid update targets the status-bar slot."""

    status = StatusCode.STATUS_BAR_GRID


class NoSuchAppletError(SlotTableError):
    """Raised when updating a slot that has no applet."""

    status = StatusCode.NO_SUCH_APPLET


class SlotTable:
    """
    Fixed table of four optional applets guarded by one mutex.

    Critical sections are synchronous, so a threading.Lock suffices.
    """

    def __init__(self, slot_count: int = SLOT_COUNT):
        self._slots: List[Optional[Applet]] = [None] * slot_count
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._slots)

    def _check_index(self, slot: int) -> None:
        if not 0 <= slot < len(self._slots):
            raise IndexError(f"Slot {slot} out of range 0-{len(self._slots) - 1}")

    def try_create(self, slot: int, parameters: Sequence[int]) -> SeparatorKind:
        """
        Install a new applet in an empty slot.

        Occupancy is checked before the separator value, so creating over a
        live applet reports AppletExistsError whatever the parameters.

        Args:
            slot: Target slot index
            parameters: CreateApplet parameters (one separator kind value)

        Returns:
            SeparatorKind: Kind of the created applet

        Raises:
            AppletExistsError: If the slot is occupied
            InvalidSeparatorValueError: If the parameters don't name a kind
        """
        self._check_index(slot)
        with self._lock:
            if self._slots[slot] is not None:
                raise AppletExistsError(f"Applet {slot} already exists")
            try:
                kind = SeparatorKind.from_parameters(parameters)
            except InvalidSeparatorError as e:
                raise InvalidSeparatorValueError(str(e)) from e
            self._slots[slot] = Applet(kind)
        logger.debug(f"Created applet {slot} with {kind.name.lower()} separator")
        return kind

    def apply_command(self, slot: int, command: Command) -> None:
        """
        Apply an update command to the applet in a slot.

        Raises:
            StatusBarGridError: UpdateGrid aimed at the status-bar slot
            NoSuchAppletError: If the slot is empty
            AppletError: Propagated from Applet.apply
        """
        self._check_index(slot)
        if slot == STATUS_SLOT and command.opcode is Opcode.UPDATE_GRID:
            raise StatusBarGridError("Attempted to update applet 0 grid")
        with self._lock:
            applet = self._slots[slot]
            if applet is None:
                raise NoSuchAppletError(f"No applet in slot {slot}")
            applet.apply(command)

    def is_occupied(self, slot: int) -> bool:
        self._check_index(slot)
        with self._lock:
            return self._slots[slot] is not None

    def clear(self, slot: int) -> None:
        """
        Reset a slot to empty. Idempotent.

        An out-of-range index is a caller bug; it is logged and the table is
        left untouched.
        """
        if not 0 <= slot < len(self._slots):
            logger.error(f"clear() received invalid slot {slot}")
            return
        with self._lock:
            removed = self._slots[slot]
            self._slots[slot] = None
        if removed is not None:
            logger.debug(f"Cleared applet {slot}")

    def snapshot(self) -> List[Optional[np.ndarray]]:
        """
        Copy every slot's composed block under the lock.

        Returns:
            List[Optional[np.ndarray]]: One (11, 9) block per slot, None if empty
        """
        with self._lock:
            return [
                applet.compose_block() if applet is not None else None
                for applet in self._slots
            ]

    def describe(self) -> List[Dict[str, object]]:
        """Per-slot occupancy summary for status reporting."""
        with self._lock:
            return [
                {
                    "slot": index,
                    "occupied": applet is not None,
                    "separator": (
                        applet.separator_kind.name.lower() if applet is not None else None
                    ),
                }
                for index, applet in enumerate(self._slots)
            ]
