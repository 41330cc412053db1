"""Slide-and-merge resolution of a single move. Pure functions only."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Tuple, Union

import numpy as np

from engine.errors import InternalInvariantError
from engine.events import TileMerged
from engine.grid import EMPTY, GridState, Position


class Direction(IntEnum):
    # Action indices as used by the HTTP surface: 0: up, 1: right, 2: down, 3: left
    UP = 0
    RIGHT = 1
    DOWN = 2
    LEFT = 3

    @classmethod
    def parse(cls, value: Union["Direction", int, str]) -> "Direction":
        if isinstance(value, Direction):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unsupported direction: {value!r}") from None
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            try:
                return cls(int(value))
            except ValueError:
                raise ValueError(f"Unsupported action: {value}") from None
        raise ValueError(f"Unsupported direction: {value!r}")


@dataclass(frozen=True)
class TileMovement:
    """A tile travelling from one cell to another; `merged` if it ended in a merge."""

    source: Position
    target: Position
    value: int
    merged: bool = False


@dataclass(frozen=True)
class MoveResult:
    grid: GridState
    direction: Direction
    score_delta: int
    moved: bool
    merges: Tuple[TileMerged, ...] = ()
    movements: Tuple[TileMovement, ...] = ()


@dataclass(frozen=True)
class _Tile:
    value: int
    sources: Tuple[Tuple[Position, int], ...]
    merged: bool = False


Line = List[Optional[_Tile]]


def line_positions(size: int, line: int, direction: Direction) -> List[Position]:
    """Cells of one row/column ordered from the edge the tiles travel toward."""
    if direction == Direction.LEFT:
        return [Position(line, i) for i in range(size)]
    if direction == Direction.RIGHT:
        return [Position(line, size - 1 - i) for i in range(size)]
    if direction == Direction.UP:
        return [Position(i, line) for i in range(size)]
    return [Position(size - 1 - i, line) for i in range(size)]


def compress(line: Line) -> Line:
    """Slide tiles toward the leading edge, keeping their order."""
    tiles = [tile for tile in line if tile is not None]
    return tiles + [None] * (len(line) - len(tiles))


def merge(line: Line) -> Tuple[Line, int]:
    """Merge equal neighbours from the leading edge; each tile merges at most once."""
    line = list(line)
    gain = 0
    for j in range(len(line) - 1):
        first, second = line[j], line[j + 1]
        if first is None or second is None or first.value != second.value:
            continue
        if first.merged or second.merged:
            raise InternalInvariantError(f"Tile of value {first.value} merged twice in one move.")
        merged_value = first.value * 2
        line[j] = _Tile(merged_value, first.sources + second.sources, merged=True)
        line[j + 1] = None
        gain += merged_value
    return line, gain


def resolve_line(values: List[int], positions: List[Position]) -> Tuple[List[int], int, List[TileMerged], List[TileMovement]]:
    line: Line = [
        _Tile(value, ((position, value),)) if value != EMPTY else None
        for value, position in zip(values, positions)
    ]
    line = compress(line)
    line, gain = merge(line)
    line = compress(line)

    new_values: List[int] = []
    merges: List[TileMerged] = []
    movements: List[TileMovement] = []
    for tile, target in zip(line, positions):
        if tile is None:
            new_values.append(EMPTY)
            continue
        new_values.append(tile.value)
        if tile.merged:
            merges.append(TileMerged(target.row, target.column, tile.value))
        for source, value in tile.sources:
            if source != target or tile.merged:
                movements.append(TileMovement(source, target, value, tile.merged))
    return new_values, gain, merges, movements


def resolve_move(grid: GridState, direction: Union[Direction, int, str]) -> MoveResult:
    """Slide and merge every line of the board toward `direction`."""
    direction = Direction.parse(direction)
    size = grid.size
    board = grid.array.copy()

    score_delta = 0
    moved = False
    merges: List[TileMerged] = []
    movements: List[TileMovement] = []

    for line in range(size):
        positions = line_positions(size, line, direction)
        original = [int(board[p.row, p.column]) for p in positions]
        new_values, gain, line_merges, line_movements = resolve_line(original, positions)
        if new_values == original:
            continue
        moved = True
        score_delta += gain
        merges.extend(line_merges)
        movements.extend(line_movements)
        for position, value in zip(positions, new_values):
            board[position.row, position.column] = value

    if not moved:
        return MoveResult(grid=grid, direction=direction, score_delta=0, moved=False)

    return MoveResult(
        grid=GridState(board),
        direction=direction,
        score_delta=score_delta,
        moved=True,
        merges=tuple(merges),
        movements=tuple(movements),
    )
