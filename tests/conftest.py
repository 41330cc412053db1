from __future__ import annotations

from dataclasses import replace
from typing import Sequence

import pytest

from engine.config import GameConfig
from engine.game import GameEngine
from engine.grid import GridState


def engine_from_rows(
    rows: Sequence[Sequence[int]],
    *,
    score: int = 0,
    win_tile: int = 2048,
    seed: int = 7,
    four_probability: float = 0.1,
) -> GameEngine:
    """Build an engine positioned on an arbitrary board via a snapshot restore."""
    grid = GridState.from_rows(rows)
    engine = GameEngine(GameConfig(size=grid.size, win_tile=win_tile, four_probability=four_probability))
    engine.new_game(seed=seed)
    dto = replace(
        engine.snapshot(),
        board=grid.to_flat(),
        score=score,
        highest_tile=grid.max_tile(),
    )
    engine.restore_from_snapshot(dto)
    return engine


NO_MOVES_BOARD = [
    [2, 4, 2, 4],
    [4, 2, 4, 2],
    [2, 4, 2, 4],
    [4, 2, 4, 2],
]

# Moving right fills the last cell and leaves no legal move, whatever spawns.
LOSING_BOARD = [
    [2, 4, 2, 4],
    [4, 2, 4, 2],
    [8, 4, 2, 4],
    [16, 8, 16, 0],
]


@pytest.fixture
def seeded_engine() -> GameEngine:
    engine = GameEngine()
    engine.new_game(seed=1234)
    return engine
