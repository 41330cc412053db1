import pytest

from conftest import NO_MOVES_BOARD
from engine.errors import InvalidGridError
from engine.grid import MAX_TILE, GridState, Position


def test_empty_board():
    grid = GridState.empty(4)
    assert grid.size == 4
    assert grid.tile_count() == 0
    assert len(grid.empty_cells()) == 16
    assert not grid.is_full()


@pytest.mark.parametrize("bad_value", [1, 3, 6, -2, 12])
def test_rejects_non_power_of_two_tiles(bad_value):
    rows = [[0] * 4 for _ in range(4)]
    rows[1][2] = bad_value
    with pytest.raises(InvalidGridError):
        GridState.from_rows(rows)


def test_rejects_non_square_board():
    with pytest.raises(InvalidGridError):
        GridState.from_rows([[2, 0, 0], [0, 0, 0]])


def test_from_flat_length_mismatch():
    with pytest.raises(InvalidGridError):
        GridState.from_flat([0] * 15, 4)


def test_from_flat_is_row_major():
    grid = GridState.from_flat([2, 0, 0, 0, 0, 4, 0, 0, 0, 0, 0, 0, 0, 0, 0, 8], 4)
    assert grid.value_at(Position(0, 0)) == 2
    assert grid.value_at(Position(1, 1)) == 4
    assert grid.value_at(Position(3, 3)) == 8
    assert grid.to_flat()[15] == 8


def test_board_is_read_only():
    grid = GridState.from_rows(NO_MOVES_BOARD)
    with pytest.raises(ValueError):
        grid.array[0, 0] = 8


def test_with_tile_returns_new_board():
    grid = GridState.empty(4)
    updated = grid.with_tile(Position(2, 3), 4)
    assert grid.value_at(Position(2, 3)) == 0
    assert updated.value_at(Position(2, 3)) == 4
    assert updated.tile_count() == 1


def test_value_at_out_of_range():
    with pytest.raises(IndexError):
        GridState.empty(4).value_at(Position(4, 0))


def test_empty_cells_in_row_major_order():
    grid = GridState.from_rows([[2, 0], [0, 4]])
    assert grid.empty_cells() == [Position(0, 1), Position(1, 0)]


def test_full_board_without_pairs_has_no_legal_move():
    grid = GridState.from_rows(NO_MOVES_BOARD)
    assert grid.is_full()
    assert not grid.has_any_legal_move()


def test_single_empty_cell_restores_a_legal_move():
    grid = GridState.from_rows(NO_MOVES_BOARD).with_tile(Position(3, 3), 0)
    assert grid.has_any_legal_move()


def test_horizontal_pair_is_a_legal_move():
    grid = GridState.from_rows(NO_MOVES_BOARD).with_tile(Position(0, 1), 2)
    assert grid.is_full()
    assert grid.has_any_legal_move()


def test_vertical_pair_is_a_legal_move():
    grid = GridState.from_rows(NO_MOVES_BOARD).with_tile(Position(3, 3), 4)
    assert grid.is_full()
    assert grid.has_any_legal_move()


def test_equality_and_hash():
    a = GridState.from_rows(NO_MOVES_BOARD)
    b = GridState.from_flat(a.to_flat(), 4)
    assert a == b
    assert hash(a) == hash(b)
    assert a != a.with_tile(Position(0, 0), 8)


@pytest.mark.parametrize("huge", [2 ** 63, 2 ** 64])
def test_rejects_tiles_beyond_int64(huge):
    with pytest.raises(InvalidGridError):
        GridState.from_flat([huge] + [0] * 15, 4)


def test_largest_tile_is_accepted():
    grid = GridState.from_flat([MAX_TILE] + [0] * 15, 4)
    assert grid.max_tile() == MAX_TILE
