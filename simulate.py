"""Play seeded 2048 games with a simple policy and report aggregate statistics."""

from __future__ import annotations

import argparse
import csv
import os
import random
from collections import deque
from dataclasses import dataclass
from statistics import mean
from typing import Callable, Deque, Dict, List, Optional, Sequence

from db import postgres as db
from engine.config import GameConfig
from engine.events import dispatch
from engine.game import GameEngine
from engine.moves import Direction
from stats.achievements import AchievementTracker
from stats.tracker import StatisticsTracker

Policy = Callable[[GameEngine, Sequence[Direction], random.Random], Direction]

METRIC_FIELDS = ["game", "seed", "score", "moves", "max_tile", "won"]


@dataclass
class GameStats:
    seed: int
    score: int
    moves: int
    max_tile: int
    won: bool


def random_policy(engine: GameEngine, available: Sequence[Direction], rng: random.Random) -> Direction:
    return rng.choice(list(available))


def greedy_policy(engine: GameEngine, available: Sequence[Direction], rng: random.Random) -> Direction:
    """Pick the move with the largest immediate score gain, ties broken randomly."""
    gains = {direction: engine.peek_move(direction).score_delta for direction in available}
    best_gain = max(gains.values())
    best_moves = [direction for direction, gain in gains.items() if gain == best_gain]
    return rng.choice(best_moves)


# Keep the big tiles in the bottom-left corner.
CORNER_PREFERENCE = (Direction.DOWN, Direction.LEFT, Direction.RIGHT, Direction.UP)


def corner_policy(engine: GameEngine, available: Sequence[Direction], rng: random.Random) -> Direction:
    for direction in CORNER_PREFERENCE:
        if direction in available:
            return direction
    return available[0]


POLICIES: Dict[str, Policy] = {
    "random": random_policy,
    "greedy": greedy_policy,
    "corner": corner_policy,
}


def play_game(
    engine: GameEngine,
    policy: Policy,
    *,
    seed: int,
    rng: random.Random,
    listeners: Sequence[object] = (),
    max_moves: int = 0,
) -> GameStats:
    outcome = engine.new_game(seed=seed)
    dispatch(outcome.events, *listeners)

    while not engine.is_over:
        available = engine.available_moves()
        if not available:
            break
        outcome = engine.apply_move(policy(engine, available, rng))
        dispatch(outcome.events, *listeners)
        if max_moves and engine.move_count >= max_moves and not engine.is_over:
            dispatch(engine.end_game().events, *listeners)

    return GameStats(
        seed=seed,
        score=engine.score,
        moves=engine.move_count,
        max_tile=engine.highest_tile,
        won=engine.has_won,
    )


def prepare_metrics_writer(path: str, append: bool):
    if not path:
        return None, None
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    should_write_header = True
    if append and os.path.exists(path):
        try:
            should_write_header = os.path.getsize(path) == 0
        except OSError:
            should_write_header = True
    handle = open(path, "a" if append else "w", newline="", encoding="utf-8")
    writer = csv.DictWriter(handle, fieldnames=METRIC_FIELDS)
    if should_write_header:
        writer.writeheader()
        handle.flush()
    return writer, handle


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--games", type=int, default=100, help="Number of games to play")
    parser.add_argument("--policy", choices=sorted(POLICIES), default="greedy", help="Move selection policy")
    parser.add_argument("--seed", type=int, default=42, help="Base seed; game i uses seed + i")
    parser.add_argument("--size", type=int, default=None, help="Board size (defaults to GAME_BOARD_SIZE or 4)")
    parser.add_argument("--win-tile", type=int, default=None, help="Winning tile (defaults to GAME_WIN_TILE or 2048)")
    parser.add_argument("--max-moves", type=int, default=0, help="Abandon a game after this many moves (0 = never)")
    parser.add_argument("--log-interval", type=int, default=10, help="Games between log outputs")
    parser.add_argument(
        "--metrics-path",
        type=str,
        default="",
        help="Optional path to a CSV file where per-game metrics are written",
    )
    parser.add_argument(
        "--metrics-append",
        action="store_true",
        help="Append to an existing metrics file instead of overwriting it",
    )
    parser.add_argument("--db-url", type=str, default="", help="Postgres URL; defaults to POSTGRES_URL/DATABASE_URL")
    parser.add_argument("--run-name", type=str, default="", help="Run name stored in Postgres")
    parser.add_argument("--notes", type=str, default="", help="Optional run notes stored in Postgres")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> GameConfig:
    base = GameConfig.from_env()
    return GameConfig(
        size=args.size if args.size is not None else base.size,
        win_tile=args.win_tile if args.win_tile is not None else base.win_tile,
        four_probability=base.four_probability,
    )


def main(argv: Optional[Sequence[str]] = None) -> List[GameStats]:
    args = parse_args(argv)
    config = build_config(args)
    policy = POLICIES[args.policy]
    rng = random.Random(args.seed)

    engine = GameEngine(config)
    tracker = StatisticsTracker()
    achievements = AchievementTracker()
    recent: Deque[GameStats] = deque(maxlen=max(1, args.log_interval))
    results: List[GameStats] = []

    db_ctx = db.init_run(
        db_url=db.get_db_url(args.db_url),
        policy=args.policy,
        run_name=args.run_name,
        notes=args.notes,
        params={"games": args.games, "seed": args.seed, "size": config.size, "win_tile": config.win_tile},
    )
    metrics_writer, metrics_file = prepare_metrics_writer(args.metrics_path, args.metrics_append)

    try:
        for game in range(1, args.games + 1):
            stats = play_game(
                engine,
                policy,
                seed=args.seed + game,
                rng=rng,
                listeners=(tracker, achievements),
                max_moves=args.max_moves,
            )
            results.append(stats)
            recent.append(stats)

            if metrics_writer and metrics_file:
                metrics_writer.writerow(
                    {
                        "game": game,
                        "seed": stats.seed,
                        "score": stats.score,
                        "moves": stats.moves,
                        "max_tile": stats.max_tile,
                        "won": int(stats.won),
                    }
                )
                metrics_file.flush()
            db.log_game(
                db_ctx,
                game=game,
                seed=stats.seed,
                score=stats.score,
                moves=stats.moves,
                max_tile=stats.max_tile,
                won=stats.won,
            )

            if game % args.log_interval == 0:
                avg_score = mean(stat.score for stat in recent)
                avg_moves = mean(stat.moves for stat in recent)
                best_tile = max(stat.max_tile for stat in recent)
                print(
                    f"Game {game:>5}: avg score={avg_score:8.1f} | avg moves={avg_moves:7.1f} | "
                    f"best tile={best_tile:5d}"
                )
    finally:
        if metrics_file:
            metrics_file.flush()
            metrics_file.close()
        db.close(db_ctx)

    summary = tracker.get_statistics()
    print(
        f"Played {summary.games_played} games ({args.policy}): "
        f"best score={summary.best_score} | avg score={summary.average_score} | "
        f"highest tile={summary.highest_tile} | win rate={summary.win_rate:.1f}% | "
        f"best streak={summary.best_streak}"
    )
    if achievements.unlocked():
        print("Achievements: " + ", ".join(achievements.unlocked()))
    return results


if __name__ == "__main__":
    main()
