from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from engine.errors import InvalidSnapshotError
from engine.snapshot import GameStateDto
from stats.tracker import GameStatistics, StatisticsTracker

try:
    import psycopg
except ImportError:  # pragma: no cover - optional dependency
    psycopg = None

DEFAULT_SLOT = "default"


@dataclass(frozen=True)
class RunContext:
    conn: "psycopg.Connection"
    run_id: int


def get_db_url(explicit: str | None = None) -> str | None:
    if explicit:
        return explicit
    return os.environ.get("POSTGRES_URL") or os.environ.get("DATABASE_URL")


def open_connection(db_url: str) -> Optional["psycopg.Connection"]:
    if not db_url:
        return None
    if psycopg is None:
        print("psycopg is not installed; skipping Postgres persistence.")
        return None
    conn = psycopg.connect(db_url)
    conn.autocommit = True
    return conn


def ensure_schema(conn: "psycopg.Connection") -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS saved_games (
                slot TEXT PRIMARY KEY,
                state_json TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT NOW()
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS game_statistics (
                id INTEGER PRIMARY KEY,
                stats_json TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT NOW()
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS simulation_runs (
                id SERIAL PRIMARY KEY,
                policy TEXT NOT NULL,
                run_name TEXT,
                notes TEXT,
                params_json TEXT,
                created_at TIMESTAMP DEFAULT NOW()
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS game_results (
                id SERIAL PRIMARY KEY,
                run_id INTEGER REFERENCES simulation_runs(id) ON DELETE CASCADE,
                game INTEGER NOT NULL,
                seed NUMERIC(20, 0),
                score INTEGER,
                moves INTEGER,
                max_tile INTEGER,
                won BOOLEAN,
                created_at TIMESTAMP DEFAULT NOW()
            );
            """
        )
        cur.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_game_results_run_game
            ON game_results(run_id, game);
            """
        )


# ------------------------------------------------------------- saved games
def save_game_state(conn: "psycopg.Connection", dto: GameStateDto, slot: str = DEFAULT_SLOT) -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO saved_games (slot, state_json, updated_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (slot) DO UPDATE
            SET state_json = EXCLUDED.state_json, updated_at = NOW();
            """,
            (slot, dto.to_json()),
        )


def load_game_state(conn: "psycopg.Connection", slot: str = DEFAULT_SLOT) -> Optional[GameStateDto]:
    with conn.cursor() as cur:
        cur.execute("SELECT state_json FROM saved_games WHERE slot = %s;", (slot,))
        row = cur.fetchone()
    if row is None:
        return None
    try:
        return GameStateDto.from_json(row[0])
    except InvalidSnapshotError as exc:
        print(f"Ignoring corrupt saved game in slot '{slot}': {exc}")
        return None


def delete_game_state(conn: "psycopg.Connection", slot: str = DEFAULT_SLOT) -> None:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM saved_games WHERE slot = %s;", (slot,))


# -------------------------------------------------------------- statistics
def save_statistics(conn: "psycopg.Connection", statistics: GameStatistics) -> None:
    stats_json = json.dumps(statistics.to_dict(), sort_keys=True)
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO game_statistics (id, stats_json, updated_at)
            VALUES (1, %s, NOW())
            ON CONFLICT (id) DO UPDATE
            SET stats_json = EXCLUDED.stats_json, updated_at = NOW();
            """,
            (stats_json,),
        )


def load_statistics(conn: "psycopg.Connection") -> Optional[GameStatistics]:
    with conn.cursor() as cur:
        cur.execute("SELECT stats_json FROM game_statistics WHERE id = 1;")
        row = cur.fetchone()
    if row is None:
        return None
    try:
        return GameStatistics.from_dict(json.loads(row[0]))
    except (TypeError, ValueError) as exc:
        print(f"Ignoring unreadable statistics row: {exc}")
        return None


class PostgresStatisticsTracker(StatisticsTracker):
    """Statistics tracker that writes through to the game_statistics table."""

    def __init__(self, conn: "psycopg.Connection", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.conn = conn

    def save(self, statistics: GameStatistics) -> None:
        save_statistics(self.conn, statistics)

    def load(self) -> Optional[GameStatistics]:
        return load_statistics(self.conn)


# ------------------------------------------------------ simulation results
def create_run(
    conn: "psycopg.Connection",
    *,
    policy: str,
    run_name: str = "",
    notes: str = "",
    params: Optional[Mapping[str, Any]] = None,
) -> int:
    params_json = json.dumps(params or {}, sort_keys=True)
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO simulation_runs (policy, run_name, notes, params_json)
            VALUES (%s, %s, %s, %s)
            RETURNING id;
            """,
            (policy, run_name or None, notes or None, params_json),
        )
        return int(cur.fetchone()[0])


def init_run(
    *,
    db_url: str | None,
    policy: str,
    run_name: str = "",
    notes: str = "",
    params: Optional[Mapping[str, Any]] = None,
) -> Optional[RunContext]:
    if not db_url:
        return None
    conn = open_connection(db_url)
    if conn is None:
        return None
    ensure_schema(conn)
    run_id = create_run(
        conn,
        policy=policy,
        run_name=run_name,
        notes=notes,
        params=params,
    )
    return RunContext(conn=conn, run_id=run_id)


def log_game(
    ctx: Optional[RunContext],
    *,
    game: int,
    seed: int,
    score: int,
    moves: int,
    max_tile: int,
    won: bool,
) -> None:
    if ctx is None:
        return
    with ctx.conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO game_results (run_id, game, seed, score, moves, max_tile, won)
            VALUES (%s, %s, %s, %s, %s, %s, %s);
            """,
            (ctx.run_id, game, seed, score, moves, max_tile, won),
        )


def close(ctx: Optional[RunContext]) -> None:
    if ctx is None:
        return
    ctx.conn.close()
