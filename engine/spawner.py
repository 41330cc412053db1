"""Seeded tile spawning.

The random state is threaded explicitly: every spawn takes a numpy PCG64
bit-generator state and returns the advanced one, so a saved state replays
bit-for-bit and no two engines share a generator.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict

import numpy as np

from engine.config import DEFAULT_FOUR_PROBABILITY
from engine.errors import InternalInvariantError
from engine.grid import GridState, Position

RngState = Dict[str, Any]


@dataclass(frozen=True)
class SpawnResult:
    grid: GridState
    position: Position
    value: int
    rng_state: RngState


def generate_seed() -> int:
    """Draw a fresh 64-bit seed from OS entropy."""
    return int(np.random.SeedSequence().generate_state(1, dtype=np.uint64)[0])


def new_rng_state(seed: int) -> RngState:
    return copy.deepcopy(np.random.PCG64(seed).state)


def generator_from_state(rng_state: RngState) -> np.random.Generator:
    bit_generator = np.random.PCG64()
    bit_generator.state = copy.deepcopy(rng_state)
    return np.random.Generator(bit_generator)


def spawn_tile(
    grid: GridState,
    rng_state: RngState,
    four_probability: float = DEFAULT_FOUR_PROBABILITY,
) -> SpawnResult:
    """Place a 2 (or, with `four_probability`, a 4) on a uniformly chosen empty cell."""
    empty_cells = grid.empty_cells()
    if not empty_cells:
        raise InternalInvariantError("Cannot spawn a tile on a full board.")

    rng = generator_from_state(rng_state)
    position = empty_cells[int(rng.integers(len(empty_cells)))]
    value = 4 if rng.random() < four_probability else 2

    return SpawnResult(
        grid=grid.with_tile(position, value),
        position=position,
        value=value,
        rng_state=copy.deepcopy(rng.bit_generator.state),
    )