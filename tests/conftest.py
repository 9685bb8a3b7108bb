"""Shared fixtures for matrix board tests."""

import pytest

from matrix_board.config import SerialConfig
from matrix_board.display import MockMatrix
from matrix_board.slot_table import SlotTable


@pytest.fixture
def slot_table() -> SlotTable:
    return SlotTable()


@pytest.fixture
def mock_driver() -> MockMatrix:
    """Mock LED matrix; tests call connect() themselves."""
    return MockMatrix(SerialConfig(port="/dev/null", mock=True))
