"""
Whole-panel operations on a MatrixDriver: startup initialisation, pushing
a brightness image, and the frame test diagnostic.
"""

import logging
import time

import numpy as np

from .display import MatrixDriver, blank_matrix, MATRIX_ROWS, MATRIX_COLS

logger = logging.getLogger(__name__)


async def show(driver: MatrixDriver, matrix) -> None:
    """Set every pixel's brightness and commit it to the module."""
    driver.set_brightness(matrix)
    await driver.commit_brightness()


async def apply_scale(driver: MatrixDriver, matrix) -> None:
    """Set every pixel's scale and commit it to the module."""
    driver.set_scale(matrix)
    await driver.commit_scale()


async def init_board(driver: MatrixDriver) -> None:
    """Blank the panel and put every pixel at full scale."""
    await show(driver, blank_matrix(0))
    await apply_scale(driver, blank_matrix(255))
    logger.info("LED matrix initialised (brightness off, full scale)")


def sweep_value(row: int, col: int) -> int:
    return (row % 16) ^ col


async def frame_test(driver: MatrixDriver) -> float:
    """
    Sweep every pixel through the test pattern, one commit per pixel.

    Returns:
        float: Average frames per second achieved over the sweep
    """
    pattern = np.zeros((MATRIX_ROWS, MATRIX_COLS), dtype=np.uint8)
    frames = MATRIX_ROWS * MATRIX_COLS

    start = time.perf_counter()
    for row in range(MATRIX_ROWS):
        for col in range(MATRIX_COLS):
            pattern[row, col] = sweep_value(row, col)
            await show(driver, pattern)
    elapsed = time.perf_counter() - start

    fps = frames / elapsed if elapsed > 0 else float("inf")
    logger.info(f"Max Average FPS: {fps:.1f} ({frames} frames in {elapsed:.3f}s)")

    await show(driver, blank_matrix(0))
    return fps
