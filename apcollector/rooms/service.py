"""Room operations exposed to the HTTP layer."""
import logging

from ..errors import ForbiddenError
from ..submissions.store import SubmissionStore
from .lifecycle import RoomLifecycle
from .schemas import Room, RoomStats
from .store import RoomStore

logger = logging.getLogger(__name__)


class RoomService:
    """Create rooms, read them back and report creator statistics."""

    def __init__(
        self,
        rooms: RoomStore,
        submissions: SubmissionStore,
        lifecycle: RoomLifecycle,
    ) -> None:
        self._rooms = rooms
        self._submissions = submissions
        self._lifecycle = lifecycle

    def create_room(self, creator_identity: str) -> Room:
        room = self._rooms.create(creator_identity, now=self._lifecycle.now())
        logger.info("Created room %s for %s (expires %s)", room.id, creator_identity, room.expires_at)
        return room

    def get_room(self, room_id: str) -> Room:
        """Raises RoomNotFoundError or RoomExpiredError when not active."""
        return self._lifecycle.require_active_room(room_id)

    def get_room_stats(self, room_id: str, requester_identity: str) -> RoomStats:
        """Submission and file totals; only the room's creator may ask.

        Raises:
            ForbiddenError: If the requester did not create the room
        """
        room = self._lifecycle.require_active_room(room_id)
        if room.creator_identity != requester_identity:
            logger.warning("Stats for room %s denied to %s", room_id, requester_identity)
            raise ForbiddenError()

        submissions = self._submissions.list_by_room(room_id)
        return RoomStats(
            total_submissions=len(submissions),
            total_yaml_files=sum(len(s.yaml_files) for s in submissions),
            total_apworld_files=sum(len(s.apworld_files) for s in submissions),
            room_created_at=room.created_at,
            room_expires_at=room.expires_at,
        )
