"""Load the per-game CSV metrics written by `simulate.py` into Postgres."""

from __future__ import annotations

import argparse
import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence

from db import postgres as db

REQUIRED_COLUMNS = ("game", "score", "moves", "max_tile")


@dataclass
class FileSummary:
    path: Path
    games: int = 0
    wins: int = 0
    best_score: int = 0
    last_game: int = 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--db-url", type=str, default="", help="Postgres URL; defaults to POSTGRES_URL/DATABASE_URL")
    parser.add_argument("--policy", type=str, required=True, help="Policy the games were played with")
    parser.add_argument("--run-name", type=str, default="", help="Run name stored in Postgres")
    parser.add_argument("--notes", type=str, default="", help="Optional run notes stored in Postgres")
    parser.add_argument(
        "--csv",
        action="append",
        required=True,
        help="Metrics file from simulate.py --metrics-path; repeat to import several in order",
    )
    parser.add_argument(
        "--run-per-file",
        action="store_true",
        help="Store each CSV file as its own simulation run",
    )
    parser.add_argument(
        "--game-offset",
        type=int,
        default=0,
        help="Added to every game number",
    )
    parser.add_argument(
        "--auto-offset",
        action="store_true",
        help="Continue game numbering from the last game of the previous file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only check the files and print their summaries; no database needed",
    )
    return parser.parse_args(argv)


def read_game_rows(path: Path) -> Iterator[dict]:
    with path.open(newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        missing = [column for column in REQUIRED_COLUMNS if column not in (reader.fieldnames or ())]
        if missing:
            raise ValueError(f"{path}: missing columns {', '.join(missing)}")
        for line, row in enumerate(reader, start=2):
            try:
                yield dict(
                    game=int(row["game"]),
                    seed=int(row.get("seed") or 0),
                    score=int(float(row["score"])),
                    moves=int(float(row["moves"])),
                    max_tile=int(float(row["max_tile"])),
                    won=parse_won(row.get("won")),
                )
            except (TypeError, ValueError) as exc:
                raise ValueError(f"{path}:{line}: {exc}") from exc


def parse_won(raw: Optional[str]) -> bool:
    return (raw or "").strip().lower() in {"1", "true", "yes"}


def import_file(
    path: Path,
    *,
    db_ctx: Optional[db.RunContext],
    game_offset: int,
) -> FileSummary:
    """Log every game of one file; with no context the rows are only checked."""
    summary = FileSummary(path)
    for row in read_game_rows(path):
        row["game"] += game_offset
        db.log_game(db_ctx, **row)
        summary.games += 1
        summary.wins += row["won"]
        summary.best_score = max(summary.best_score, row["score"])
        summary.last_game = max(summary.last_game, row["game"])
    return summary


def report(summary: FileSummary, db_ctx: Optional[db.RunContext]) -> None:
    target = f"run {db_ctx.run_id}" if db_ctx is not None else "dry run"
    print(
        f"{summary.path}: {summary.games} games, {summary.wins} won, "
        f"best score={summary.best_score} ({target})"
    )


def open_run(args: argparse.Namespace, db_url: str, run_name: str, source) -> Optional[db.RunContext]:
    if args.dry_run:
        return None
    db_ctx = db.init_run(
        db_url=db_url,
        policy=args.policy,
        run_name=run_name,
        notes=args.notes,
        params={"source_csv": source},
    )
    if db_ctx is None:
        raise SystemExit("Could not initialize Postgres connection.")
    return db_ctx


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    db_url = db.get_db_url(args.db_url)
    if not db_url and not args.dry_run:
        raise SystemExit("No database URL provided. Set POSTGRES_URL or pass --db-url.")

    game_offset = args.game_offset
    csv_paths = [Path(p) for p in args.csv]
    shared_ctx = None
    if not args.run_per_file:
        shared_ctx = open_run(args, db_url, args.run_name, [str(p) for p in csv_paths])

    try:
        for path in csv_paths:
            db_ctx = shared_ctx
            if args.run_per_file:
                db_ctx = open_run(args, db_url, args.run_name or path.stem, str(path))
            try:
                summary = import_file(path, db_ctx=db_ctx, game_offset=game_offset)
            except ValueError as exc:
                raise SystemExit(f"Import failed: {exc}") from exc
            finally:
                if args.run_per_file:
                    db.close(db_ctx)
            report(summary, db_ctx)
            if args.auto_offset:
                game_offset = summary.last_game
    finally:
        db.close(shared_ctx)


if __name__ == "__main__":
    main()
