"""
GameEngine: owns one game's board, score, counters, status and history.

Every command returns a MoveOutcome holding the fresh snapshot and the
ordered events the command produced; collaborators are driven by passing
those events to `engine.events.dispatch`.
"""

from __future__ import annotations

import copy
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Deque, List, Optional, Tuple, Union

from engine.config import GameConfig
from engine.errors import InvalidSnapshotError, InvalidStateError
from engine.events import (
    GAME_OVER_ABANDONED,
    GAME_OVER_LOST,
    Event,
    GameOver,
    GameRestored,
    GameStarted,
    GameWon,
    MoveMade,
    TileSpawned,
)
from engine.grid import GridState, Position
from engine.moves import Direction, MoveResult, resolve_move
from engine.snapshot import STATUS_ACTIVE, STATUS_LOST, STATUS_WON, GameStateDto, validate_snapshot
from engine.spawner import RngState, generate_seed, new_rng_state, spawn_tile

INITIAL_TILES = 2
UNDO_LIMIT = 50


class GameStatus(str, Enum):
    ACTIVE = STATUS_ACTIVE
    WON = STATUS_WON
    LOST = STATUS_LOST


@dataclass(frozen=True)
class MoveRecord:
    direction: Direction
    spawned_at: Position
    spawned_value: int


@dataclass(frozen=True)
class MoveOutcome:
    moved: bool
    snapshot: GameStateDto
    events: Tuple[Event, ...] = ()
    result: Optional[MoveResult] = None

    @property
    def won(self) -> Optional[GameWon]:
        """The win event of this command, if it produced one."""
        return next((event for event in self.events if isinstance(event, GameWon)), None)


@dataclass(frozen=True)
class _EngineState:
    grid: GridState
    score: int
    move_count: int
    highest_tile: int
    status: GameStatus
    has_won: bool
    ended: bool
    rng_state: RngState = field(default_factory=dict)


class GameEngine:
    def __init__(self, config: Optional[GameConfig] = None, undo_limit: int = UNDO_LIMIT) -> None:
        if undo_limit < 0:
            raise ValueError(f"undo_limit must be >= 0, got {undo_limit}.")
        self.config = config or GameConfig()
        self.undo_limit = undo_limit
        self.seed: Optional[int] = None
        self._state: Optional[_EngineState] = None
        # Oldest moves fall off once the limit is reached.
        self._history: Deque[Tuple[_EngineState, MoveRecord]] = deque(maxlen=undo_limit)

    @classmethod
    def from_snapshot(cls, dto: GameStateDto) -> "GameEngine":
        engine = cls()
        engine.restore_from_snapshot(dto)
        return engine

    # ---------------------------------------------------------------- queries
    @property
    def started(self) -> bool:
        return self._state is not None

    @property
    def grid(self) -> GridState:
        return self._require_game().grid

    @property
    def score(self) -> int:
        return self._require_game().score

    @property
    def move_count(self) -> int:
        return self._require_game().move_count

    @property
    def highest_tile(self) -> int:
        return self._require_game().highest_tile

    @property
    def status(self) -> GameStatus:
        return self._require_game().status

    @property
    def has_won(self) -> bool:
        return self._require_game().has_won

    @property
    def is_over(self) -> bool:
        """True once the game-over notification for this game has been issued."""
        return self._require_game().ended

    @property
    def can_undo(self) -> bool:
        return self._state is not None and not self._state.ended and bool(self._history)

    @property
    def history(self) -> Tuple[MoveRecord, ...]:
        return tuple(record for _, record in self._history)

    def available_moves(self) -> List[Direction]:
        """Directions that would change the board."""
        grid = self.grid
        return [direction for direction in Direction if resolve_move(grid, direction).moved]

    def peek_move(self, direction: Union[Direction, int, str]) -> MoveResult:
        """Resolve a move against the current board without committing or spawning."""
        return resolve_move(self.grid, direction)

    # --------------------------------------------------------------- commands
    def new_game(self, seed: Optional[int] = None) -> MoveOutcome:
        """Start a fresh game; an unfinished previous game is reported as abandoned."""
        if seed is None:
            seed = generate_seed()
        if isinstance(seed, bool) or not isinstance(seed, int) or seed < 0:
            raise ValueError(f"Seed must be a non-negative integer, got {seed!r}.")

        events: List[Event] = []
        previous = self._state
        if previous is not None and not previous.ended:
            events.append(GameOver(previous.score, previous.has_won, GAME_OVER_ABANDONED))

        grid = GridState.empty(self.config.size)
        rng_state = new_rng_state(seed)
        events.append(GameStarted(seed))
        for _ in range(INITIAL_TILES):
            spawned = spawn_tile(grid, rng_state, self.config.four_probability)
            grid, rng_state = spawned.grid, spawned.rng_state
            events.append(TileSpawned(spawned.position.row, spawned.position.column, spawned.value))

        self.seed = seed
        self._history.clear()
        self._state = _EngineState(
            grid=grid,
            score=0,
            move_count=0,
            highest_tile=grid.max_tile(),
            status=GameStatus.ACTIVE,
            has_won=False,
            ended=False,
            rng_state=rng_state,
        )
        return MoveOutcome(moved=True, snapshot=self.snapshot(), events=tuple(events))

    def apply_move(self, direction: Union[Direction, int, str]) -> MoveOutcome:
        state = self._require_game()
        if state.status is GameStatus.LOST:
            raise InvalidStateError("The game is lost; no further moves are accepted.")
        if state.ended:
            raise InvalidStateError("The game has ended; start a new game to keep playing.")

        result = resolve_move(state.grid, direction)
        if not result.moved:
            if state.grid.has_any_legal_move():
                return MoveOutcome(moved=False, snapshot=self.snapshot(), result=result)
            # A restored board can be stuck without having been reported lost.
            self._state = replace(state, status=GameStatus.LOST, ended=True)
            event = GameOver(state.score, state.has_won, GAME_OVER_LOST)
            return MoveOutcome(moved=False, snapshot=self.snapshot(), events=(event,), result=result)

        score = state.score + result.score_delta
        spawned = spawn_tile(result.grid, state.rng_state, self.config.four_probability)
        grid = spawned.grid
        highest_tile = max(state.highest_tile, grid.max_tile())

        events: List[Event] = list(result.merges)
        events.append(TileSpawned(spawned.position.row, spawned.position.column, spawned.value))
        events.append(MoveMade(score, highest_tile))

        status = state.status
        has_won = state.has_won
        if not has_won:
            winner = next((merge for merge in result.merges if merge.value >= self.config.win_tile), None)
            if winner is not None:
                has_won = True
                status = GameStatus.WON
                events.append(GameWon(winner.row, winner.column, winner.value))

        ended = False
        if not grid.has_any_legal_move():
            status = GameStatus.LOST
            ended = True
            events.append(GameOver(score, has_won, GAME_OVER_LOST))

        record = MoveRecord(result.direction, spawned.position, spawned.value)
        self._history.append((state, record))
        self._state = _EngineState(
            grid=grid,
            score=score,
            move_count=state.move_count + 1,
            highest_tile=highest_tile,
            status=status,
            has_won=has_won,
            ended=ended,
            rng_state=spawned.rng_state,
        )
        return MoveOutcome(moved=True, snapshot=self.snapshot(), events=tuple(events), result=result)

    def undo(self) -> MoveOutcome:
        """Revert the last effective move. A reported win stays reported."""
        state = self._require_game()
        if state.ended:
            raise InvalidStateError("Cannot undo after the game has ended.")
        if not self._history:
            raise InvalidStateError("There is no move to undo.")

        previous, _ = self._history.pop()
        self._state = replace(
            previous,
            highest_tile=state.highest_tile,
            has_won=state.has_won,
            status=GameStatus.WON if state.has_won else GameStatus.ACTIVE,
        )
        return MoveOutcome(moved=True, snapshot=self.snapshot())

    def end_game(self) -> MoveOutcome:
        """Abandon the current game, reporting it as over."""
        state = self._require_game()
        if state.ended:
            raise InvalidStateError("The game has already ended.")
        self._state = replace(state, ended=True)
        event = GameOver(state.score, state.has_won, GAME_OVER_ABANDONED)
        return MoveOutcome(moved=False, snapshot=self.snapshot(), events=(event,))

    # ------------------------------------------------------------ persistence
    def snapshot(self) -> GameStateDto:
        state = self._require_game()
        return GameStateDto(
            size=state.grid.size,
            board=state.grid.to_flat(),
            score=state.score,
            move_count=state.move_count,
            status=state.status.value,
            has_won=state.has_won,
            ended=state.ended,
            highest_tile=state.highest_tile,
            win_tile=self.config.win_tile,
            four_probability=self.config.four_probability,
            seed=self.seed if self.seed is not None else 0,
            rng_state=copy.deepcopy(state.rng_state),
        )

    def restore_from_snapshot(self, dto: GameStateDto) -> MoveOutcome:
        """Replace all engine state from a snapshot. On error nothing changes.

        An unfinished game being replaced is reported as abandoned first.
        """
        if not isinstance(dto, GameStateDto):
            raise InvalidSnapshotError(f"Expected a GameStateDto, got {type(dto).__name__}.")
        grid = validate_snapshot(dto)

        events: List[Event] = []
        previous = self._state
        if previous is not None and not previous.ended:
            events.append(GameOver(previous.score, previous.has_won, GAME_OVER_ABANDONED))

        self.config = GameConfig(
            size=dto.size,
            win_tile=dto.win_tile,
            four_probability=dto.four_probability,
        )
        self.seed = dto.seed
        self._history.clear()
        self._state = _EngineState(
            grid=grid,
            score=dto.score,
            move_count=dto.move_count,
            highest_tile=dto.highest_tile,
            status=GameStatus(dto.status),
            has_won=dto.has_won,
            ended=dto.ended,
            rng_state=copy.deepcopy(dict(dto.rng_state)),
        )
        events.append(GameRestored(dto.score, dto.has_won, dto.ended))
        return MoveOutcome(moved=True, snapshot=self.snapshot(), events=tuple(events))

    def _require_game(self) -> _EngineState:
        if self._state is None:
            raise InvalidStateError("No game in progress; call new_game() first.")
        return self._state
