"""
Immutable N x N board for the puzzle engine.

The board is a read-only numpy array of ints where 0 marks an empty cell and
any other value is a tile (a power of two, at least 2). Every change builds a
new GridState; nothing mutates a board in place.
"""

from __future__ import annotations

from typing import List, NamedTuple, Sequence

import numpy as np

from engine.config import is_power_of_two
from engine.errors import InvalidGridError

EMPTY = 0
# Largest power of two an int64 board can hold.
MAX_TILE = 2 ** 62


class Position(NamedTuple):
    row: int
    column: int


def _validate_values(board: np.ndarray) -> None:
    for value in board.flatten().tolist():
        if value == EMPTY:
            continue
        if value < 2 or value > MAX_TILE or not is_power_of_two(value):
            raise InvalidGridError(f"Tile value {value} is not a power of two >= 2 and <= {MAX_TILE}.")


def _as_int64(values) -> np.ndarray:
    try:
        return np.array(values, dtype=np.int64)
    except OverflowError as exc:
        raise InvalidGridError(f"Tile value out of range: {exc}") from None


class GridState:
    __slots__ = ("_board",)

    def __init__(self, board: np.ndarray) -> None:
        board = _as_int64(board)
        if board.ndim != 2 or board.shape[0] != board.shape[1] or board.shape[0] < 1:
            raise InvalidGridError(f"Board must be square, got shape {board.shape}.")
        _validate_values(board)
        board.setflags(write=False)
        self._board = board

    # ------------------------------------------------------------------ builders
    @classmethod
    def empty(cls, size: int) -> "GridState":
        return cls(np.zeros((size, size), dtype=np.int64))

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[int]]) -> "GridState":
        return cls(_as_int64(rows))

    @classmethod
    def from_flat(cls, values: Sequence[int], size: int) -> "GridState":
        if len(values) != size * size:
            raise InvalidGridError(
                f"Board has {len(values)} cells, expected {size * size} for size {size}."
            )
        return cls(_as_int64(values).reshape(size, size))

    def with_tile(self, position: Position, value: int) -> "GridState":
        """Return a copy of the board with one cell replaced."""
        self._check_position(position)
        board = self._board.copy()
        board[position.row, position.column] = value
        return GridState(board)

    # ------------------------------------------------------------------- queries
    @property
    def size(self) -> int:
        return int(self._board.shape[0])

    @property
    def array(self) -> np.ndarray:
        """Read-only view of the underlying board."""
        return self._board

    def value_at(self, position: Position) -> int:
        self._check_position(position)
        return int(self._board[position.row, position.column])

    def is_full(self) -> bool:
        return not bool((self._board == EMPTY).any())

    def empty_cells(self) -> List[Position]:
        """Empty cells in row-major order."""
        return [Position(int(r), int(c)) for r, c in np.argwhere(self._board == EMPTY)]

    def tile_count(self) -> int:
        return int(np.count_nonzero(self._board))

    def max_tile(self) -> int:
        return int(self._board.max())

    def tile_sum(self) -> int:
        return int(self._board.sum())

    def has_any_legal_move(self) -> bool:
        if not self.is_full():
            return True
        board = self._board
        if (board[:, :-1] == board[:, 1:]).any():
            return True
        return bool((board[:-1, :] == board[1:, :]).any())

    def to_flat(self) -> List[int]:
        return [int(value) for value in self._board.flatten()]

    def to_rows(self) -> List[List[int]]:
        return [[int(value) for value in row] for row in self._board.tolist()]

    def _check_position(self, position: Position) -> None:
        row, column = position
        if not (0 <= row < self.size and 0 <= column < self.size):
            raise IndexError(f"Position {tuple(position)} is outside a {self.size}x{self.size} board.")

    # ------------------------------------------------------------------ dunders
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GridState):
            return NotImplemented
        return self._board.shape == other._board.shape and bool((self._board == other._board).all())

    def __hash__(self) -> int:
        return hash((self.size, tuple(self.to_flat())))

    def __repr__(self) -> str:
        return f"GridState({self.to_rows()})"

