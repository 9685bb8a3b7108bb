"""
Compositor / refresh loop.

Merges the slot table into one 34x9 brightness image and pushes it to the
display driver, either at a fixed rate or, with a zero period, as fast as
the event loop allows.

Panel layout (rows, top to bottom):
    0       status bar (slot 0 separator)
    1-11    slot 1: separator, then 10 grid rows
    12-22   slot 2
    23-33   slot 3
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import numpy as np

from .applet import BLOCK_ROWS
from .board import show
from .display import MatrixDriver, blank_matrix
from .protocol import STATUS_SLOT
from .slot_table import SlotTable

logger = logging.getLogger(__name__)


def block_origin(slot: int) -> int:
    """First panel row of an applet slot's 11-row block."""
    return 1 + BLOCK_ROWS * (slot - 1)


def compose_panel(blocks: List[Optional[np.ndarray]]) -> np.ndarray:
    """
    Assemble the full panel image from a slot table snapshot.

    Args:
        blocks: One (11, 9) block per slot, None for empty slots

    Returns:
        np.ndarray: (34, 9) uint8 brightness image
    """
    image = blank_matrix(0)
    for slot, block in enumerate(blocks):
        if block is None:
            continue
        if slot == STATUS_SLOT:
            image[0] = block[0]
        else:
            top = block_origin(slot)
            image[top : top + BLOCK_ROWS] = block
    return image


class Compositor:
    """
    Periodic task that reads the slot table and drives the display.

    Pacing is fixed-rate: deadlines advance by one period per tick. A slow
    refresh makes the next tick late, never a burst of catch-up ticks.
    """

    def __init__(self, slot_table: SlotTable, driver: MatrixDriver, period: float):
        if period < 0:
            raise ValueError(f"Refresh period must be >= 0, got {period}")
        self.slot_table = slot_table
        self.driver = driver
        self.period = period

        self._running = False
        self._last_frame: np.ndarray = blank_matrix(0)

        self._stats = {
            "frames_written": 0,
            "write_errors": 0,
        }

        # Effective FPS measurement (rolling window)
        self._fps_window_start = time.monotonic()
        self._fps_window_count = 0
        self._fps_last = 0.0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_frame(self) -> np.ndarray:
        return self._last_frame.copy()

    async def refresh_once(self) -> np.ndarray:
        """Snapshot, compose and write one frame."""
        image = compose_panel(self.slot_table.snapshot())
        await show(self.driver, image)
        self._last_frame = image
        self._record_frame()
        return image

    def _record_frame(self) -> None:
        self._stats["frames_written"] += 1
        now = time.monotonic()
        self._fps_window_count += 1
        elapsed = now - self._fps_window_start
        if elapsed >= 1.0:
            self._fps_last = self._fps_window_count / elapsed
            self._fps_window_start = now
            self._fps_window_count = 0

    async def run(self) -> None:
        """Refresh until stopped or cancelled."""
        if self._running:
            logger.warning("Compositor already running")
            return

        self._running = True
        if self.period > 0:
            logger.info(f"Starting refresh loop at {1.0 / self.period:.1f}fps")
        else:
            logger.info("Starting unpaced refresh loop")

        loop = asyncio.get_running_loop()
        next_deadline = loop.time()
        try:
            while self._running:
                if self.period > 0:
                    now = loop.time()
                    if now < next_deadline:
                        await asyncio.sleep(next_deadline - now)
                    next_deadline = max(next_deadline + self.period, loop.time())
                else:
                    # no pacing, but let connection handlers run
                    await asyncio.sleep(0)

                try:
                    await self.refresh_once()
                except Exception as e:
                    self._stats["write_errors"] += 1
                    logger.error(f"Error refreshing LED matrix: {e}")
        finally:
            self._running = False
            logger.info("Refresh loop stopped")

    def stop(self) -> None:
        self._running = False

    def get_stats(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "period": self.period,
            "target_fps": 1.0 / self.period if self.period > 0 else None,
            "fps_actual": self._fps_last,
            "stats": self._stats.copy(),
        }
