"""
Lifecycle events emitted by the engine.

The engine never calls collaborators itself. Every command returns the list
of events it produced and the caller hands them to `dispatch`, which maps
them onto the collaborator hooks:

    on_game_started()
    on_move_made(score, highest_tile)
    on_game_won()
    on_game_over(final_score, was_won)
    on_game_restored(has_won, ended)

Listeners may implement any subset of the hooks.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Union

GAME_OVER_LOST = "lost"
GAME_OVER_ABANDONED = "abandoned"


@dataclass(frozen=True)
class GameStarted:
    seed: int


@dataclass(frozen=True)
class TileMerged:
    row: int
    column: int
    value: int


@dataclass(frozen=True)
class TileSpawned:
    row: int
    column: int
    value: int


@dataclass(frozen=True)
class MoveMade:
    score: int
    highest_tile: int


@dataclass(frozen=True)
class GameWon:
    row: int
    column: int
    value: int


@dataclass(frozen=True)
class GameOver:
    final_score: int
    was_won: bool
    reason: str = GAME_OVER_LOST


@dataclass(frozen=True)
class GameRestored:
    """The engine took over a game from a snapshot."""

    score: int
    has_won: bool
    ended: bool


Event = Union[GameStarted, TileMerged, TileSpawned, MoveMade, GameWon, GameOver, GameRestored]


def event_to_dict(event: Event) -> Dict[str, Any]:
    payload = asdict(event)
    payload["type"] = type(event).__name__
    return payload


def _notify(listener: Any, hook: str, *args: Any) -> None:
    method = getattr(listener, hook, None)
    if method is not None:
        method(*args)


def dispatch(events: Iterable[Event], *listeners: Any) -> None:
    """Deliver events to listeners in order. Merge and spawn events are UI-only."""
    for event in events:
        for listener in listeners:
            if isinstance(event, GameStarted):
                _notify(listener, "on_game_started")
            elif isinstance(event, MoveMade):
                _notify(listener, "on_move_made", event.score, event.highest_tile)
            elif isinstance(event, GameWon):
                _notify(listener, "on_game_won")
            elif isinstance(event, GameOver):
                _notify(listener, "on_game_over", event.final_score, event.was_won)
            elif isinstance(event, GameRestored):
                _notify(listener, "on_game_restored", event.has_won, event.ended)
