from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Columns added after the first release; create_all() never alters existing tables.
# (name, sqlite_type, postgres_type, default_clause)
REQUIRED_TOURNAMENT_COLUMNS: List[Tuple[str, str, str, str]] = [
    ("round_delay_days", "INTEGER", "INTEGER", "DEFAULT 0"),
]

REQUIRED_BATTLE_COLUMNS: List[Tuple[str, str, str, str]] = [
    ("is_draw", "INTEGER", "BOOLEAN", "DEFAULT FALSE"),
    ("battle_duration", "FLOAT", "DOUBLE PRECISION", ""),
    ("forfeit_reason", "TEXT", "TEXT", ""),
]


def _is_sqlite(engine: Engine) -> bool:
    return engine.dialect.name.lower() == "sqlite"


def _get_existing_columns_sqlite(engine: Engine, table_name: str) -> Dict[str, str]:
    cols: Dict[str, str] = {}
    with engine.connect() as conn:
        res = conn.execute(text(f"PRAGMA table_info({table_name});")).fetchall()
        # PRAGMA table_info returns rows: (cid, name, type, notnull, dflt_value, pk)
        for row in res:
            cols[str(row[1])] = str(row[2])
    return cols


def _get_existing_columns_postgres(engine: Engine, table_name: str) -> Dict[str, str]:
    cols: Dict[str, str] = {}
    sql = """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_schema = 'public' AND table_name = :table_name;
    """
    with engine.connect() as conn:
        res = conn.execute(text(sql), {"table_name": table_name}).fetchall()
        for row in res:
            cols[str(row[0])] = str(row[1])
    return cols


def _table_exists(engine: Engine, table: str) -> bool:
    with engine.connect() as conn:
        if _is_sqlite(engine):
            result = conn.execute(
                text("SELECT name FROM sqlite_master WHERE type='table' AND name=:table_name"),
                {"table_name": table},
            ).fetchone()
            return bool(result)
        result = conn.execute(
            text("""
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_schema = 'public' AND table_name = :table_name
            )
        """),
            {"table_name": table},
        ).fetchone()
        return bool(result and result[0])


def _ensure_columns(engine: Engine, table: str, required: List[Tuple[str, str, str, str]]) -> List[str]:
    """Add any missing columns to `table`. Returns the names that were added."""
    if not _table_exists(engine, table):
        # create_all() will build it with every column
        return []

    added: List[str] = []
    if _is_sqlite(engine):
        existing = _get_existing_columns_sqlite(engine, table)
        with engine.begin() as conn:
            for name, sqlite_type, _pg_type, default in required:
                if name in existing:
                    continue
                # SQLite has no IF NOT EXISTS for ADD COLUMN; FALSE is spelled 0
                sqlite_default = default.replace("FALSE", "0")
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {sqlite_type} {sqlite_default};"))
                added.append(name)
    else:
        existing = _get_existing_columns_postgres(engine, table)
        with engine.begin() as conn:
            for name, _sqlite_type, pg_type, default in required:
                if name in existing:
                    continue
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {name} {pg_type} {default};"))
                added.append(name)
    return added


def ensure_tournament_columns(engine: Engine) -> None:
    """
    Idempotently adds required columns to the 'tournament' table if missing.
    Safe to run at every startup.
    """
    try:
        from arena.models.tournament import Tournament

        added = _ensure_columns(engine, Tournament.__table__.name, REQUIRED_TOURNAMENT_COLUMNS)
        if added:
            logger.info(f"Added tournament columns: {', '.join(added)}")
    except Exception as e:
        # Log error but don't crash the server
        logger.warning(f"Failed to ensure tournament columns (this is OK if table doesn't exist yet): {e}")


def ensure_battle_columns(engine: Engine) -> None:
    """
    Idempotently adds required columns to the battle table if missing.
    Safe to run at every startup.
    """
    try:
        from arena.models.tournament_battle import TournamentBattle

        added = _ensure_columns(engine, TournamentBattle.__table__.name, REQUIRED_BATTLE_COLUMNS)
        if added:
            logger.info(f"Added battle columns: {', '.join(added)}")
    except Exception as e:
        logger.warning(f"Failed to ensure battle columns (this is OK if table doesn't exist yet): {e}")
