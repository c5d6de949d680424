"""DuckDB-backed submission records.

``update`` replaces both file lists wholesale. Callers that append or
remove files must read, modify and write under the per-participant lock
held by :class:`~apcollector.submissions.service.SubmissionService`.
"""
import json
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from ..database import Database, utcnow
from ..errors import SubmissionNotFoundError
from .schemas import Submission

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, room_id, participant_identity, yaml_files, apworld_files, "
    "created_at, updated_at"
)


class SubmissionStore:
    """CRUD over the ``submissions`` table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def find(self, room_id: str, participant_identity: str) -> Optional[Submission]:
        row = self._db.fetchone(
            f"SELECT {_COLUMNS} FROM submissions "
            "WHERE room_id = ? AND participant_identity = ?",
            [room_id, participant_identity],
        )
        return self._row_to_submission(row) if row else None

    def get(self, room_id: str, participant_identity: str) -> Submission:
        """Raises SubmissionNotFoundError when the participant has none."""
        submission = self.find(room_id, participant_identity)
        if submission is None:
            raise SubmissionNotFoundError()
        return submission

    def create(
        self,
        room_id: str,
        participant_identity: str,
        yaml_files: Sequence[str] = (),
        apworld_files: Sequence[str] = (),
        now: Optional[datetime] = None,
    ) -> int:
        now = now or utcnow()
        row = self._db.fetchone(
            """
            INSERT INTO submissions
              (room_id, participant_identity, yaml_files, apworld_files,
               created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            [
                room_id,
                participant_identity,
                json.dumps(list(yaml_files)),
                json.dumps(list(apworld_files)),
                now,
                now,
            ],
        )
        return row[0]

    def update(
        self,
        room_id: str,
        participant_identity: str,
        yaml_files: Sequence[str],
        apworld_files: Sequence[str],
        now: Optional[datetime] = None,
    ) -> int:
        """Replace both lists and bump ``updated_at``; returns rows changed."""
        rows = self._db.fetchall(
            """
            UPDATE submissions
               SET yaml_files = ?, apworld_files = ?, updated_at = ?
             WHERE room_id = ? AND participant_identity = ?
            RETURNING id
            """,
            [
                json.dumps(list(yaml_files)),
                json.dumps(list(apworld_files)),
                now or utcnow(),
                room_id,
                participant_identity,
            ],
        )
        return len(rows)

    def list_by_room(self, room_id: str) -> List[Submission]:
        rows = self._db.fetchall(
            f"SELECT {_COLUMNS} FROM submissions WHERE room_id = ? ORDER BY id ASC",
            [room_id],
        )
        return [self._row_to_submission(r) for r in rows]

    def delete(self, room_id: str, participant_identity: str) -> int:
        rows = self._db.fetchall(
            "DELETE FROM submissions "
            "WHERE room_id = ? AND participant_identity = ? RETURNING id",
            [room_id, participant_identity],
        )
        return len(rows)

    def delete_all_by_room(self, room_id: str) -> int:
        rows = self._db.fetchall(
            "DELETE FROM submissions WHERE room_id = ? RETURNING id", [room_id]
        )
        return len(rows)

    @staticmethod
    def _row_to_submission(row: tuple) -> Submission:
        return Submission(
            id=row[0],
            room_id=row[1],
            participant_identity=row[2],
            yaml_files=json.loads(row[3] or "[]"),
            apworld_files=json.loads(row[4] or "[]"),
            created_at=row[5],
            updated_at=row[6],
        )
