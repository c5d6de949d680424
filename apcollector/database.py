"""DuckDB handle shared by the room and submission stores.

The database is opened once when the application starts and closed on
shutdown. Stores receive the handle explicitly; nothing in the package
keeps a module-level connection.

Database Schema:
    rooms table:
        - id: Room identifier (UUID string)
        - created_at / expires_at: naive UTC timestamps
        - creator_identity: Identity of whoever created the room
    submissions table:
        - id: Auto-incrementing primary key
        - room_id / participant_identity: unique pair
        - yaml_files / apworld_files: JSON arrays of stored file names
        - created_at / updated_at: naive UTC timestamps

Thread Safety:
    A DuckDB connection must not be used from several threads at once.
    FastAPI runs sync endpoints in a thread pool, so every statement goes
    through ``_lock``.
"""
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Sequence

import duckdb

from .errors import StorageFaultError

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS rooms (
        id               VARCHAR PRIMARY KEY,
        created_at       TIMESTAMP NOT NULL,
        expires_at       TIMESTAMP NOT NULL,
        creator_identity VARCHAR NOT NULL
    )
    """,
    "CREATE SEQUENCE IF NOT EXISTS submissions_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS submissions (
        id                   INTEGER DEFAULT nextval('submissions_seq') PRIMARY KEY,
        room_id              VARCHAR NOT NULL,
        participant_identity VARCHAR NOT NULL,
        yaml_files           VARCHAR NOT NULL DEFAULT '[]',
        apworld_files        VARCHAR NOT NULL DEFAULT '[]',
        created_at           TIMESTAMP NOT NULL,
        updated_at           TIMESTAMP NOT NULL,
        UNIQUE (room_id, participant_identity)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_rooms_expires_at ON rooms(expires_at)",
    "CREATE INDEX IF NOT EXISTS idx_submissions_room_id ON submissions(room_id)",
)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form stored in DuckDB."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Database:
    """Owns the single DuckDB connection for the process."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._db_path

    def open(self) -> "Database":
        """Connect and create the schema. Safe to call more than once."""
        if self._connection is not None:
            return self
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._connection = duckdb.connect(str(self._db_path))
            for statement in _SCHEMA:
                self._connection.execute(statement)
        except duckdb.Error as exc:
            raise StorageFaultError(f"Failed to open database: {exc}") from exc
        logger.info("Database initialized at %s", self._db_path)
        return self

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.info("Database closed")

    # ------------------------------------------------------------------
    # Statement helpers
    # ------------------------------------------------------------------

    def execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        self._run(sql, params, fetch=None)

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[tuple]:
        return self._run(sql, params, fetch="one")

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[tuple]:
        return self._run(sql, params, fetch="all")

    def _run(self, sql: str, params: Sequence[Any], fetch: Optional[str]):
        with self._lock:
            if self._connection is None:
                raise StorageFaultError("Database is not open")
            try:
                cursor = self._connection.execute(sql, list(params))
                if fetch == "one":
                    return cursor.fetchone()
                if fetch == "all":
                    return cursor.fetchall()
                return None
            except duckdb.Error as exc:
                logger.error("Database statement failed: %s", exc)
                raise StorageFaultError(f"Database error: {exc}") from exc
