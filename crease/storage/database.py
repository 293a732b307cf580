"""
SQLite persistence layer.

Tables:
  - matches: one row per match with its setup config, both rosters and the
    latest MatchState snapshot (full event log included)

The engine never touches storage; the service saves a fresh snapshot after
every successful mutation. Uses aiosqlite for async access.
Database file: settings.db_path (default data/matches.db)
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from crease.config import settings
from crease.models import MatchConfig, MatchState, Team

logger = logging.getLogger(__name__)

DB_PATH = Path(settings.db_path)
DB_DIR = DB_PATH.parent

_db: aiosqlite.Connection | None = None

MATCH_STATUSES = ("scheduled", "live", "completed")


# ------------------------------------------------------------------ #
#  Connection management
# ------------------------------------------------------------------ #

async def init_db() -> None:
    """Create tables if they don't exist. Called once at app startup."""
    global _db
    DB_DIR.mkdir(parents=True, exist_ok=True)

    _db = await aiosqlite.connect(str(DB_PATH))
    _db.row_factory = aiosqlite.Row

    await _db.executescript("""
        CREATE TABLE IF NOT EXISTS matches (
            match_id    INTEGER PRIMARY KEY AUTOINCREMENT,
            title       TEXT NOT NULL,
            status      TEXT NOT NULL DEFAULT 'scheduled',
            config      TEXT NOT NULL,
            teams       TEXT NOT NULL DEFAULT '[]',
            state       TEXT NOT NULL,
            result      TEXT,
            created_at  TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_matches_status
            ON matches(status, created_at);
    """)

    await _db.commit()
    logger.info(f"SQLite database initialized at {DB_PATH}")


async def close_db() -> None:
    """Close the database connection."""
    global _db
    if _db:
        await _db.close()
        _db = None


def _get_db() -> aiosqlite.Connection:
    if _db is None:
        raise RuntimeError("Database not initialized: call init_db() first")
    return _db


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ------------------------------------------------------------------ #
#  Matches CRUD
# ------------------------------------------------------------------ #

async def create_match(
    title: str,
    config: MatchConfig,
    teams: list[Team],
    state: MatchState,
    status: str = "scheduled",
) -> dict:
    """Insert a new match. Returns the created record with auto-generated ID."""
    db = _get_db()
    now = _now()
    config_json = config.model_dump_json()
    teams_json = json.dumps([t.model_dump(mode="json") for t in teams])
    cursor = await db.execute(
        """INSERT INTO matches (title, status, config, teams, state, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (title, status, config_json, teams_json, state.model_dump_json(), now, now),
    )
    await db.commit()
    return {
        "match_id": cursor.lastrowid,
        "title": title,
        "status": status,
        "config": json.loads(config_json),
        "teams": json.loads(teams_json),
        "state": state.model_dump(mode="json"),
        "result": None,
        "created_at": now,
        "updated_at": now,
    }


async def get_match(match_id: int) -> dict | None:
    db = _get_db()
    async with db.execute("SELECT * FROM matches WHERE match_id = ?", (match_id,)) as cur:
        row = await cur.fetchone()
        return _row_to_match(row) if row else None


async def list_matches(status: str | None = None) -> list[dict]:
    db = _get_db()
    if status:
        query = "SELECT * FROM matches WHERE status = ? ORDER BY created_at DESC"
        params: tuple = (status,)
    else:
        query = "SELECT * FROM matches ORDER BY created_at DESC"
        params = ()
    async with db.execute(query, params) as cur:
        return [_row_to_match(r) for r in await cur.fetchall()]


async def save_match_state(
    match_id: int,
    state: MatchState,
    status: str | None = None,
    result: dict | None = None,
) -> None:
    """Overwrite the stored snapshot; status and result only change when given."""
    db = _get_db()
    sets = ["state = ?", "updated_at = ?"]
    params: list = [state.model_dump_json(), _now()]
    if status is not None:
        sets.append("status = ?")
        params.append(status)
    if result is not None:
        sets.append("result = ?")
        params.append(json.dumps(result))
    params.append(match_id)
    await db.execute(f"UPDATE matches SET {', '.join(sets)} WHERE match_id = ?", params)
    await db.commit()


async def delete_match(match_id: int) -> int:
    """Delete a match. Returns the number of rows removed."""
    db = _get_db()
    cursor = await db.execute("DELETE FROM matches WHERE match_id = ?", (match_id,))
    await db.commit()
    return cursor.rowcount


def _row_to_match(row: aiosqlite.Row) -> dict:
    return {
        "match_id": row["match_id"],
        "title": row["title"],
        "status": row["status"],
        "config": json.loads(row["config"]),
        "teams": json.loads(row["teams"]),
        "state": json.loads(row["state"]),
        "result": json.loads(row["result"]) if row["result"] else None,
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }
