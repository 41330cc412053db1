"""
GameStateDto: the persisted projection of an engine.

The board is stored row-major with 0 for empty cells. The RNG field is the
numpy PCG64 bit-generator state, which is what makes a restored game continue
exactly as the original would have.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping

from engine.config import GameConfig, is_power_of_two
from engine.errors import ConfigError, InvalidGridError, InvalidSnapshotError
from engine.grid import MAX_TILE, GridState
from engine.spawner import RngState, generator_from_state

STATUS_ACTIVE = "active"
STATUS_WON = "won"
STATUS_LOST = "lost"
STATUSES = (STATUS_ACTIVE, STATUS_WON, STATUS_LOST)

_FIELDS = (
    "size",
    "board",
    "score",
    "move_count",
    "status",
    "has_won",
    "ended",
    "highest_tile",
    "win_tile",
    "four_probability",
    "seed",
    "rng_state",
)


@dataclass(frozen=True)
class GameStateDto:
    size: int
    board: List[int]
    score: int
    move_count: int
    status: str
    has_won: bool
    ended: bool
    highest_tile: int
    win_tile: int
    four_probability: float
    seed: int
    rng_state: RngState = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GameStateDto":
        if not isinstance(data, Mapping):
            raise InvalidSnapshotError("Snapshot must be a JSON object.")
        missing = [name for name in _FIELDS if name not in data]
        if missing:
            raise InvalidSnapshotError(f"Snapshot is missing fields: {', '.join(missing)}.")
        board = data["board"]
        if not isinstance(board, list):
            raise InvalidSnapshotError("Snapshot board must be a list.")
        return cls(
            size=data["size"],
            board=list(board),
            score=data["score"],
            move_count=data["move_count"],
            status=data["status"],
            has_won=data["has_won"],
            ended=data["ended"],
            highest_tile=data["highest_tile"],
            win_tile=data["win_tile"],
            four_probability=data["four_probability"],
            seed=data["seed"],
            rng_state=data["rng_state"],
        )

    @classmethod
    def from_json(cls, text: str) -> "GameStateDto":
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise InvalidSnapshotError(f"Snapshot is not valid JSON: {exc}") from exc
        return cls.from_dict(data)


def _require_int(name: str, value: Any, minimum: int = 0) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidSnapshotError(f"Snapshot field '{name}' must be an integer.")
    if value < minimum:
        raise InvalidSnapshotError(f"Snapshot field '{name}' must be >= {minimum}, got {value}.")


def _require_bool(name: str, value: Any) -> None:
    if not isinstance(value, bool):
        raise InvalidSnapshotError(f"Snapshot field '{name}' must be a boolean.")


def validate_snapshot(dto: GameStateDto) -> GridState:
    """Check every structural rule of a snapshot and return its board.

    Raises InvalidSnapshotError on the first violation.
    """
    _require_int("size", dto.size, minimum=2)
    _require_int("score", dto.score)
    _require_int("move_count", dto.move_count)
    _require_int("highest_tile", dto.highest_tile)
    _require_int("win_tile", dto.win_tile)
    _require_int("seed", dto.seed)
    _require_bool("has_won", dto.has_won)
    _require_bool("ended", dto.ended)
    if isinstance(dto.four_probability, bool) or not isinstance(dto.four_probability, (int, float)):
        raise InvalidSnapshotError("Snapshot field 'four_probability' must be a number.")

    try:
        GameConfig(size=dto.size, win_tile=dto.win_tile, four_probability=float(dto.four_probability))
    except ConfigError as exc:
        raise InvalidSnapshotError(str(exc)) from exc

    if not isinstance(dto.board, (list, tuple)):
        raise InvalidSnapshotError("Snapshot board must be a list.")
    if any(isinstance(value, bool) or not isinstance(value, int) for value in dto.board):
        raise InvalidSnapshotError("Snapshot board must contain only integers.")
    try:
        grid = GridState.from_flat(dto.board, dto.size)
    except InvalidGridError as exc:
        raise InvalidSnapshotError(str(exc)) from exc
    if grid.tile_count() == 0:
        raise InvalidSnapshotError("Snapshot board has no tiles.")

    if dto.status not in STATUSES:
        raise InvalidSnapshotError(f"Unknown status {dto.status!r}.")
    if dto.highest_tile > MAX_TILE:
        raise InvalidSnapshotError(f"Highest tile {dto.highest_tile} exceeds {MAX_TILE}.")
    if dto.highest_tile < grid.max_tile() or (dto.highest_tile and not is_power_of_two(dto.highest_tile)):
        raise InvalidSnapshotError(
            f"Highest tile {dto.highest_tile} is inconsistent with the board maximum {grid.max_tile()}."
        )
    if dto.has_won and dto.highest_tile < dto.win_tile:
        raise InvalidSnapshotError("Snapshot claims a win without reaching the win tile.")
    if not dto.has_won and dto.highest_tile >= dto.win_tile:
        raise InvalidSnapshotError("Snapshot reached the win tile without recording the win.")
    if dto.status == STATUS_WON and not dto.has_won:
        raise InvalidSnapshotError("Won status requires has_won.")
    if dto.status == STATUS_ACTIVE and dto.has_won:
        raise InvalidSnapshotError("Active status contradicts has_won.")
    if dto.status == STATUS_LOST:
        if not dto.ended:
            raise InvalidSnapshotError("Lost status requires ended.")
        if grid.has_any_legal_move():
            raise InvalidSnapshotError("Lost status on a board that still has legal moves.")

    if not isinstance(dto.rng_state, Mapping):
        raise InvalidSnapshotError("Snapshot rng_state must be an object.")
    try:
        generator_from_state(dict(dto.rng_state))
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        raise InvalidSnapshotError(f"Snapshot rng_state is not a PCG64 state: {exc}") from exc

    return grid
