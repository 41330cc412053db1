"""Aggregate gameplay statistics driven by engine events."""

from __future__ import annotations

import threading
import time
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Callable, Dict, Mapping, Optional


@dataclass
class GameStatistics:
    games_played: int = 0
    games_won: int = 0
    best_score: int = 0
    total_score: int = 0
    completed_games: int = 0
    highest_tile: int = 0
    total_moves: int = 0
    current_streak: int = 0
    best_streak: int = 0
    total_play_seconds: float = 0.0
    # Per-game flags so a single game is never counted twice.
    current_game_win_counted: bool = False
    current_game_ended: bool = False

    @property
    def win_rate(self) -> float:
        """Percentage of started games that reached the win tile."""
        return self.games_won / self.games_played * 100 if self.games_played else 0.0

    @property
    def average_score(self) -> int:
        return self.total_score // self.completed_games if self.completed_games else 0

    def copy(self) -> "GameStatistics":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["win_rate"] = self.win_rate
        payload["average_score"] = self.average_score
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GameStatistics":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


class StatisticsTracker:
    """
    Listener for the engine's lifecycle events.

    Subclasses override `save` / `load` to persist; the base class keeps the
    statistics in memory only.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._statistics: Optional[GameStatistics] = None
        self._game_started_at: Optional[float] = None

    def save(self, statistics: GameStatistics) -> None:
        pass

    def load(self) -> Optional[GameStatistics]:
        return None

    @property
    def _stats(self) -> GameStatistics:
        if self._statistics is None:
            self._statistics = self.load() or GameStatistics()
        return self._statistics

    def get_statistics(self) -> GameStatistics:
        with self._lock:
            return self._stats.copy()

    def session_seconds(self) -> float:
        """Elapsed time of the game in progress, 0 when none is running."""
        with self._lock:
            if self._game_started_at is None:
                return 0.0
            return self._clock() - self._game_started_at

    # ------------------------------------------------------------------ hooks
    def on_game_started(self) -> None:
        with self._lock:
            stats = self._stats
            stats.games_played += 1
            stats.current_game_win_counted = False
            stats.current_game_ended = False
            self._game_started_at = self._clock()
            self.save(stats)

    def on_move_made(self, score: int, highest_tile: int) -> None:
        with self._lock:
            stats = self._stats
            stats.total_moves += 1
            changed = False
            if score > stats.best_score:
                stats.best_score = score
                changed = True
            if highest_tile > stats.highest_tile:
                stats.highest_tile = highest_tile
                changed = True
            # Plain move counts are not worth a write of their own.
            if changed:
                self.save(stats)

    def on_game_won(self) -> None:
        with self._lock:
            stats = self._stats
            if stats.current_game_win_counted:
                return
            stats.games_won += 1
            stats.current_streak += 1
            stats.best_streak = max(stats.best_streak, stats.current_streak)
            stats.current_game_win_counted = True
            self.save(stats)

    def on_game_over(self, final_score: int, was_won: bool) -> None:
        with self._lock:
            stats = self._stats
            if stats.current_game_ended:
                return
            stats.total_score += final_score
            stats.completed_games += 1
            stats.current_game_ended = True
            stats.best_score = max(stats.best_score, final_score)
            if not was_won and not stats.current_game_win_counted:
                stats.current_streak = 0
            if self._game_started_at is not None:
                stats.total_play_seconds += max(0.0, self._clock() - self._game_started_at)
                self._game_started_at = None
            self.save(stats)

    def on_game_restored(self, has_won: bool, ended: bool) -> None:
        """Take over per-game bookkeeping for a game resumed from a snapshot."""
        with self._lock:
            stats = self._stats
            stats.current_game_win_counted = has_won
            stats.current_game_ended = ended
            self._game_started_at = None if ended else self._clock()
            self.save(stats)

    # ---------------------------------------------------------------- updates
    def update_best_score(self, score: int) -> None:
        with self._lock:
            stats = self._stats
            if score > stats.best_score:
                stats.best_score = score
                self.save(stats)

    def update_highest_tile(self, tile_value: int) -> None:
        with self._lock:
            stats = self._stats
            if tile_value > stats.highest_tile:
                stats.highest_tile = tile_value
                self.save(stats)

    def reset(self) -> None:
        with self._lock:
            self._statistics = GameStatistics()
            self._game_started_at = None
            self.save(self._statistics)
