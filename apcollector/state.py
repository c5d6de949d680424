"""Process-wide collector state.

Built once from an :class:`~apcollector.config.AppConfig`, opened before
the server accepts requests and closed on shutdown. Routers receive it
through the :func:`get_state` dependency instead of reaching for globals.
"""
import logging
from datetime import timedelta
from typing import Optional

from fastapi import Request

from .archives.service import ArchiveCache, BundleService
from .config import AppConfig
from .database import Database, utcnow
from .files.service import FileArea
from .rooms.lifecycle import Clock, RoomLifecycle
from .rooms.service import RoomService
from .rooms.store import RoomStore
from .rooms.sweeper import ExpirySweeper
from .submissions.service import SubmissionService
from .submissions.store import SubmissionStore

logger = logging.getLogger(__name__)


class CollectorState:
    """Wires the stores, file area, cache and services together."""

    def __init__(self, config: AppConfig, clock: Optional[Clock] = None) -> None:
        self.config = config
        storage = config.storage
        rooms_cfg = config.rooms

        self.database = Database(storage.database_path)
        self.rooms = RoomStore(self.database, retention=timedelta(hours=rooms_cfg.retention_hours))
        self.submissions = SubmissionStore(self.database)
        self.file_area = FileArea(storage.rooms_path, max_file_size_bytes=rooms_cfg.max_file_size_bytes)
        self.archives = ArchiveCache(storage.archives_path, self.file_area, self.submissions)
        self.lifecycle = RoomLifecycle(
            self.rooms, self.submissions, self.file_area, self.archives, clock=clock or utcnow,
        )
        self.room_service = RoomService(self.rooms, self.submissions, self.lifecycle)
        self.submission_service = SubmissionService(
            self.submissions,
            self.file_area,
            self.archives,
            self.lifecycle,
            max_files_per_upload=rooms_cfg.max_files_per_upload,
        )
        self.bundle_service = BundleService(
            self.lifecycle,
            self.submissions,
            self.archives,
            creator_only=rooms_cfg.creator_only_downloads,
        )
        self.sweeper = ExpirySweeper(
            self.rooms, self.lifecycle, interval_seconds=config.sweeper.interval_seconds,
        )

    @classmethod
    def open(cls, config: AppConfig, clock: Optional[Clock] = None) -> "CollectorState":
        state = cls(config, clock=clock)
        state.database.open()
        logger.info("Collector state ready (data_dir=%s)", config.storage.data_dir)
        return state

    def close(self) -> None:
        self.database.close()


def get_state(request: Request) -> CollectorState:
    """FastAPI dependency returning the application's collector state."""
    return request.app.state.collector
