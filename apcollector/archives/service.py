"""Cached zip bundles of a room's files, one per category.

Bundles live at {archives_dir}/{room_id}_{category}.zip. They are derived
data: any mutation of a room's files deletes both of its bundles, and the
next download rebuilds lazily from the submission records.

Builds for the same (room, category) are single-flighted; builds for
different keys never wait on each other. A bundle is written to a
temporary file and moved into place with ``os.replace``, so a half-written
zip is never visible. Each room carries a generation counter bumped by
invalidation; a build only publishes if the generation did not move while
it was running, otherwise it starts over. A torn-down room keeps a
retired marker so a build still in flight can never publish for it.

Downloads are served from a handle opened under the generation lock, so
an invalidation that unlinks the bundle afterwards does not cut the
response short.
"""
import logging
import os
import tempfile
import threading
import zipfile
from pathlib import Path
from typing import BinaryIO, Dict, List

from ..errors import ForbiddenError, NoFilesError, RoomNotFoundError, StorageFaultError
from ..files.schemas import FileCategory
from ..files.service import FileArea
from ..locks import KeyedLock
from ..rooms.lifecycle import RoomLifecycle
from ..submissions.store import SubmissionStore

logger = logging.getLogger(__name__)

# Generation value of a room that has been torn down
_RETIRED = -1


class ArchiveCache:
    """Builds, caches and invalidates per-room bundles."""

    def __init__(
        self,
        archives_dir: Path,
        file_area: FileArea,
        submissions: SubmissionStore,
    ) -> None:
        self._archives_dir = Path(archives_dir)
        self._file_area = file_area
        self._submissions = submissions
        self._build_locks = KeyedLock()
        self._generation_lock = threading.Lock()
        self._generations: Dict[str, int] = {}
        self._archives_dir.mkdir(parents=True, exist_ok=True)

    def bundle_name(self, room_id: str, category: FileCategory) -> str:
        return f"{room_id}_{category.value}.zip"

    def bundle_path(self, room_id: str, category: FileCategory) -> Path:
        return self._archives_dir / self.bundle_name(room_id, category)

    def is_cached(self, room_id: str, category: FileCategory) -> bool:
        return self.bundle_path(room_id, category).is_file()

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate(self, room_id: str) -> None:
        """Drop both bundles of a room. Never raises."""
        with self._generation_lock:
            generation = self._generations.get(room_id, 0)
            if generation != _RETIRED:
                self._generations[room_id] = generation + 1
            for category in FileCategory:
                path = self.bundle_path(room_id, category)
                try:
                    path.unlink()
                    logger.info("Deleted existing bundle: %s", path.name)
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    logger.error("Error deleting bundle %s: %s", path.name, exc)

    def forget(self, room_id: str) -> None:
        """Invalidate a torn-down room and refuse any later build for it."""
        self.invalidate(room_id)
        with self._generation_lock:
            self._generations[room_id] = _RETIRED

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def get_or_build(self, room_id: str, category: FileCategory) -> Path:
        """Return the bundle path, building it first if it is not cached.

        Raises:
            RoomNotFoundError: If the room was torn down
            StorageFaultError: If the bundle could not be written
        """
        path = self.bundle_path(room_id, category)
        with self._build_locks.hold((room_id, category)):
            if path.is_file():
                return path
            while True:
                with self._generation_lock:
                    generation = self._generations.get(room_id, 0)
                if generation == _RETIRED:
                    raise RoomNotFoundError()
                tmp_path = self._build(room_id, category)
                with self._generation_lock:
                    if self._generations.get(room_id, 0) == generation:
                        os.replace(tmp_path, path)
                        logger.info("Published bundle %s", path.name)
                        return path
                logger.info("Room %s changed during build of %s; rebuilding", room_id, path.name)
                tmp_path.unlink(missing_ok=True)

    def open_bundle(self, room_id: str, category: FileCategory) -> BinaryIO:
        """Build if needed and return an open handle on the bundle.

        The handle stays readable even if the bundle is invalidated while
        it is being streamed.
        """
        while True:
            path = self.get_or_build(room_id, category)
            with self._generation_lock:
                try:
                    return open(path, "rb")
                except FileNotFoundError:
                    pass
            logger.info("Bundle %s invalidated before it was opened; rebuilding", path.name)

    def _collect(self, room_id: str, category: FileCategory) -> List[str]:
        names: List[str] = []
        for submission in self._submissions.list_by_room(room_id):
            names.extend(submission.files_for(category))
        return names

    def _build(self, room_id: str, category: FileCategory) -> Path:
        names = self._collect(room_id, category)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._archives_dir,
            prefix=f".{room_id}_{category.value}.",
            suffix=".tmp",
        )
        tmp_path = Path(tmp_name)
        added = 0
        try:
            with os.fdopen(fd, "wb") as fh:
                with zipfile.ZipFile(fh, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                    for name in names:
                        file_path = self._file_area.path_for(room_id, name)
                        if file_path is None or not file_path.is_file():
                            logger.warning("Skipping missing file %s in room %s", name, room_id)
                            continue
                        try:
                            archive.write(file_path, arcname=name)
                        except FileNotFoundError:
                            logger.warning("File %s vanished while bundling room %s", name, room_id)
                            continue
                        added += 1
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            logger.error("Failed to build bundle for room %s (%s): %s", room_id, category.value, exc)
            raise StorageFaultError("Failed to create archive") from exc

        logger.info(
            "Built %s bundle for room %s with %d of %d files",
            category.value, room_id, added, len(names),
        )
        return tmp_path


class BundleService:
    """The download operation: access checks in front of the cache."""

    def __init__(
        self,
        lifecycle: RoomLifecycle,
        submissions: SubmissionStore,
        cache: ArchiveCache,
        creator_only: bool = True,
    ) -> None:
        self._lifecycle = lifecycle
        self._submissions = submissions
        self._cache = cache
        self._creator_only = creator_only

    def download_bundle(
        self, room_id: str, category: FileCategory, requester_identity: str
    ) -> BinaryIO:
        """Return an open handle on the (possibly freshly built) bundle.

        Raises:
            RoomNotFoundError / RoomExpiredError: If the room is not active
            ForbiddenError: If downloads are creator-only and the requester is not the creator
            NoFilesError: If nobody has submitted to the room
        """
        room = self._lifecycle.require_active_room(room_id)
        if self._creator_only and room.creator_identity != requester_identity:
            raise ForbiddenError()
        if not self._submissions.list_by_room(room_id):
            raise NoFilesError()
        return self._cache.open_bundle(room_id, category)
