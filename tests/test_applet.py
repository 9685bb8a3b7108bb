"""Tests for applet state and separator policies."""

import numpy as np
import pytest

from matrix_board.applet import (
    Applet,
    AlreadyExistsError,
    InvalidLengthError,
    InvalidSeparatorError,
    SeparatorKind,
    SeparatorNotVariableError,
)
from matrix_board.protocol import Command, Opcode


def make_command(opcode: Opcode, parameters, app_num: int = 1) -> Command:
    return Command(opcode=opcode, app_num=app_num, parameters=list(parameters))


@pytest.mark.parametrize(
    "kind, expected",
    [
        (SeparatorKind.EMPTY, [0] * 9),
        (SeparatorKind.SOLID, [255] * 9),
        (SeparatorKind.DOTTED, [255, 0, 255, 0, 255, 0, 255, 0, 255]),
        (SeparatorKind.VARIABLE, [0] * 9),
    ],
)
def test_initial_separator(kind, expected):
    applet = Applet(kind)
    assert applet.separator.tolist() == expected
    assert not applet.grid.any()


def test_separator_from_parameters():
    assert SeparatorKind.from_parameters([2]) is SeparatorKind.DOTTED

    for bad in ([], [4], [255], [1, 2]):
        with pytest.raises(InvalidSeparatorError):
            SeparatorKind.from_parameters(bad)


def test_update_grid_row_major():
    applet = Applet(SeparatorKind.SOLID)
    values = list(range(90))

    applet.apply(make_command(Opcode.UPDATE_GRID, values))

    expected = np.arange(90, dtype=np.uint8).reshape((10, 9))
    assert np.array_equal(applet.grid, expected)
    block = applet.compose_block()
    assert block.shape == (11, 9)
    assert np.array_equal(block[1:], expected)
    assert block[0].tolist() == [255] * 9


def test_update_grid_wrong_length_leaves_state():
    applet = Applet(SeparatorKind.EMPTY)
    applet.apply(make_command(Opcode.UPDATE_GRID, [7] * 90))

    for count in (0, 9, 89, 91):
        with pytest.raises(InvalidLengthError):
            applet.apply(make_command(Opcode.UPDATE_GRID, [1] * count))

    assert (applet.grid == 7).all()


def test_update_bar_variable():
    applet = Applet(SeparatorKind.VARIABLE)
    applet.apply(make_command(Opcode.UPDATE_BAR, range(1, 10)))
    assert applet.separator.tolist() == [1, 2, 3, 4, 5, 6, 7, 8, 9]
    assert applet.compose_block()[0].tolist() == [1, 2, 3, 4, 5, 6, 7, 8, 9]


@pytest.mark.parametrize(
    "kind", [SeparatorKind.EMPTY, SeparatorKind.SOLID, SeparatorKind.DOTTED]
)
def test_update_bar_fixed_separator_rejected(kind):
    applet = Applet(kind)
    before = applet.separator.copy()

    with pytest.raises(SeparatorNotVariableError):
        applet.apply(make_command(Opcode.UPDATE_BAR, [9] * 9))

    assert np.array_equal(applet.separator, before)


def test_update_bar_wrong_length():
    applet = Applet(SeparatorKind.VARIABLE)
    with pytest.raises(InvalidLengthError):
        applet.apply(make_command(Opcode.UPDATE_BAR, [9] * 8))
    assert not applet.separator.any()


def test_create_on_applet_fails():
    applet = Applet(SeparatorKind.EMPTY)
    with pytest.raises(AlreadyExistsError):
        applet.apply(make_command(Opcode.CREATE_APPLET, [0]))


def test_compose_block_is_a_copy():
    applet = Applet(SeparatorKind.VARIABLE)
    block = applet.compose_block()
    block[:, :] = 200
    assert not applet.grid.any()
    assert not applet.separator.any()
