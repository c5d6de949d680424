"""DuckDB-backed room records.

The store is deliberately dumb about expiry: ``get`` returns expired rows
and ``list_expired`` is the only query that looks at ``expires_at``.
Callers compare ``expires_at`` with the current time themselves.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from ..database import Database, utcnow
from ..errors import RoomNotFoundError
from .schemas import Room

logger = logging.getLogger(__name__)

_COLUMNS = "id, created_at, expires_at, creator_identity"


class RoomStore:
    """CRUD over the ``rooms`` table."""

    def __init__(self, db: Database, retention: timedelta = timedelta(hours=24)) -> None:
        self._db = db
        self._retention = retention

    @property
    def retention(self) -> timedelta:
        return self._retention

    def create(self, creator_identity: str, now: Optional[datetime] = None) -> Room:
        """Create a room expiring one retention window from *now*."""
        created_at = now or utcnow()
        room = Room(
            id=str(uuid.uuid4()),
            created_at=created_at,
            expires_at=created_at + self._retention,
            creator_identity=creator_identity,
        )
        self._db.execute(
            f"INSERT INTO rooms ({_COLUMNS}) VALUES (?, ?, ?, ?)",
            [room.id, room.created_at, room.expires_at, room.creator_identity],
        )
        return room

    def find(self, room_id: str) -> Optional[Room]:
        row = self._db.fetchone(
            f"SELECT {_COLUMNS} FROM rooms WHERE id = ?", [room_id]
        )
        return self._row_to_room(row) if row else None

    def get(self, room_id: str) -> Room:
        """Return the room, expired or not.

        Raises:
            RoomNotFoundError: If no record exists.
        """
        room = self.find(room_id)
        if room is None:
            raise RoomNotFoundError()
        return room

    def delete(self, room_id: str) -> int:
        """Delete the room record; returns the number of rows removed."""
        rows = self._db.fetchall(
            "DELETE FROM rooms WHERE id = ? RETURNING id", [room_id]
        )
        return len(rows)

    def list_expired(self, now: Optional[datetime] = None) -> List[Room]:
        """All rooms whose expiry lies strictly before *now*."""
        rows = self._db.fetchall(
            f"SELECT {_COLUMNS} FROM rooms WHERE expires_at < ? ORDER BY expires_at ASC",
            [now or utcnow()],
        )
        return [self._row_to_room(r) for r in rows]

    @staticmethod
    def _row_to_room(row: tuple) -> Room:
        return Room(
            id=row[0],
            created_at=row[1],
            expires_at=row[2],
            creator_identity=row[3],
        )
