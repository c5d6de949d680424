"""Room expiry and teardown.

Two independent callers drive the same teardown:
  * the lazy path: any read of an expired room tears it down on the spot
    and reports the room as gone
  * the periodic sweeper in :mod:`apcollector.rooms.sweeper`

Teardown order is file area, bundles, submissions, room record. If the
file area cannot be removed the records are kept, so the room still shows
up as expired and the next sweep retries.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from ..database import utcnow
from ..errors import RoomExpiredError, StorageFaultError
from ..files.service import FileArea
from ..submissions.store import SubmissionStore
from .schemas import Room
from .store import RoomStore

if TYPE_CHECKING:
    from ..archives.service import ArchiveCache

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class RoomLifecycle:
    """Resolves active rooms and tears down dead ones."""

    def __init__(
        self,
        rooms: RoomStore,
        submissions: SubmissionStore,
        file_area: FileArea,
        archives: "ArchiveCache",
        clock: Clock = utcnow,
    ) -> None:
        self._rooms = rooms
        self._submissions = submissions
        self._file_area = file_area
        self._archives = archives
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def require_active_room(self, room_id: str) -> Room:
        """Return the room if it exists and has not expired.

        Raises:
            RoomNotFoundError: If there is no such room
            RoomExpiredError: If the room was past its expiry (it is torn down first)
        """
        room = self._rooms.get(room_id)
        if room.is_expired(self.now()):
            logger.info("Room %s accessed after expiry; tearing down", room_id)
            try:
                self.teardown_room(room_id)
            except StorageFaultError as exc:
                logger.error("Lazy teardown of room %s failed: %s", room_id, exc)
            raise RoomExpiredError()
        return room

    def teardown_room(self, room_id: str) -> None:
        """Remove everything belonging to a room. Safe to repeat.

        Raises:
            StorageFaultError: If the file area or the records could not be removed
        """
        if not self._file_area.remove_room_area(room_id):
            raise StorageFaultError(f"Could not remove files of room {room_id}")
        self._archives.forget(room_id)
        removed_submissions = self._submissions.delete_all_by_room(room_id)
        removed_rooms = self._rooms.delete(room_id)
        logger.info(
            "Tore down room %s (%d submissions, %d room records)",
            room_id, removed_submissions, removed_rooms,
        )
