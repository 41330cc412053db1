import copy

import pytest

from conftest import NO_MOVES_BOARD
from engine.errors import InternalInvariantError
from engine.grid import GridState, Position
from engine.spawner import new_rng_state, spawn_tile


def test_spawn_on_full_board_fails():
    with pytest.raises(InternalInvariantError):
        spawn_tile(GridState.from_rows(NO_MOVES_BOARD), new_rng_state(1))


def test_spawn_places_one_tile_on_an_empty_cell():
    grid = GridState.from_rows([[2, 0, 0, 0], [0, 0, 0, 0], [0, 0, 4, 0], [0, 0, 0, 0]])
    result = spawn_tile(grid, new_rng_state(3))
    assert grid.value_at(result.position) == 0
    assert result.grid.value_at(result.position) == result.value
    assert result.value in (2, 4)
    assert result.grid.tile_count() == grid.tile_count() + 1


def test_spawn_is_deterministic_for_a_given_state():
    grid = GridState.empty(4)
    state = new_rng_state(99)
    first = spawn_tile(grid, state)
    second = spawn_tile(grid, state)
    assert first.grid == second.grid
    assert first.rng_state == second.rng_state
    assert first.rng_state != state


def test_spawn_does_not_mutate_the_input_state():
    state = new_rng_state(5)
    before = copy.deepcopy(state)
    spawn_tile(GridState.empty(4), state)
    assert state == before


@pytest.mark.parametrize("probability, expected", [(0.0, 2), (1.0, 4)])
def test_four_probability_bounds(probability, expected):
    grid = GridState.empty(4)
    state = new_rng_state(11)
    for _ in range(10):
        result = spawn_tile(grid, state, four_probability=probability)
        assert result.value == expected
        state = result.rng_state


def test_single_empty_cell_is_always_chosen():
    grid = GridState.from_rows(NO_MOVES_BOARD).with_tile(Position(1, 2), 0)
    result = spawn_tile(grid, new_rng_state(0))
    assert result.position == Position(1, 2)


def test_spawn_distribution_is_mostly_twos():
    grid = GridState.empty(4)
    state = new_rng_state(2024)
    values = []
    for _ in range(500):
        result = spawn_tile(grid, state)
        values.append(result.value)
        state = result.rng_state
    fours = values.count(4)
    assert set(values) <= {2, 4}
    assert 10 < fours < 100
