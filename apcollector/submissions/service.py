"""Submission operations: upload, selective removal, cancellation.

Each participant has at most one submission per room. Every mutation is a
read-modify-write of the submission's two file lists and runs under a lock
keyed by (room_id, participant_identity), so two concurrent uploads from
the same participant both end up in the final lists. Uploads from other
participants never wait on that lock.

File bytes are written before the record is touched and deleted only after
the record no longer references them, keeping every listed name backed by
a file on disk. Both bundles of the room are invalidated before a mutation
returns.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from ..archives.service import ArchiveCache
from ..errors import BadRequestError, PayloadTooLargeError
from ..files.schemas import FileCategory, classify
from ..files.service import FileArea
from ..locks import KeyedLock
from ..rooms.lifecycle import RoomLifecycle
from .schemas import Submission, SubmissionFiles, UploadResult
from .store import SubmissionStore

logger = logging.getLogger(__name__)

# Default ceiling on files accepted by a single upload call
MAX_FILES_PER_UPLOAD = 100

UploadedFile = Tuple[str, bytes]


class SubmissionService:
    """Participant-facing submission operations."""

    def __init__(
        self,
        submissions: SubmissionStore,
        file_area: FileArea,
        archives: ArchiveCache,
        lifecycle: RoomLifecycle,
        max_files_per_upload: int = MAX_FILES_PER_UPLOAD,
    ) -> None:
        self._submissions = submissions
        self._file_area = file_area
        self._archives = archives
        self._lifecycle = lifecycle
        self._max_files_per_upload = max_files_per_upload
        self._locks = KeyedLock()

    def get_submission(self, room_id: str, participant_identity: str) -> Optional[Submission]:
        """The caller's submission, or None if they have not uploaded yet."""
        self._lifecycle.require_active_room(room_id)
        return self._submissions.find(room_id, participant_identity)

    def upload_files(
        self,
        room_id: str,
        participant_identity: str,
        files: Sequence[UploadedFile],
    ) -> UploadResult:
        """Store files and append them to the caller's submission.

        Args:
            room_id: Target room
            participant_identity: Uploader
            files: (original filename, content) pairs

        Returns:
            The complete file lists after the upload

        Raises:
            BadRequestError: If no files (or too many) are given
            PayloadTooLargeError: If any file exceeds the size limit; nothing is stored
        """
        if not files:
            raise BadRequestError("No files provided")
        if len(files) > self._max_files_per_upload:
            raise BadRequestError(
                f"Too many files; at most {self._max_files_per_upload} per upload"
            )
        self._lifecycle.require_active_room(room_id)

        limit = self._file_area.max_file_size_bytes
        for filename, content in files:
            if len(content) > limit:
                raise PayloadTooLargeError(
                    f"File {filename!r} exceeds limit of {limit // (1024 * 1024)}MB"
                )

        logger.info(
            "Upload of %d files to room %s from %s", len(files), room_id, participant_identity
        )
        new_yaml: List[str] = []
        new_apworld: List[str] = []
        try:
            for filename, content in files:
                stored_name = self._file_area.store(room_id, filename, content)
                if classify(filename) is FileCategory.APWORLD:
                    new_apworld.append(stored_name)
                else:
                    new_yaml.append(stored_name)

            with self._locks.hold((room_id, participant_identity)):
                existing = self._submissions.find(room_id, participant_identity)
                if existing is None:
                    yaml_files, apworld_files = new_yaml, new_apworld
                    self._submissions.create(
                        room_id, participant_identity, yaml_files, apworld_files,
                        now=self._lifecycle.now(),
                    )
                else:
                    yaml_files = existing.yaml_files + new_yaml
                    apworld_files = existing.apworld_files + new_apworld
                    self._submissions.update(
                        room_id, participant_identity, yaml_files, apworld_files,
                        now=self._lifecycle.now(),
                    )
        except Exception:
            self._file_area.remove_many(room_id, new_yaml + new_apworld)
            raise
        finally:
            self._archives.invalidate(room_id)

        return UploadResult(
            yaml_files=yaml_files,
            apworld_files=apworld_files,
            created=existing is None,
        )

    def remove_files(
        self,
        room_id: str,
        participant_identity: str,
        file_names: Sequence[str],
    ) -> SubmissionFiles:
        """Drop the named stored files from the caller's submission.

        Names the caller does not own are ignored. The submission stays in
        place even when both lists end up empty.

        Raises:
            BadRequestError: If no names are given
            SubmissionNotFoundError: If the caller has no submission
        """
        if not file_names:
            raise BadRequestError("No file names provided")
        self._lifecycle.require_active_room(room_id)

        to_remove = set(file_names)
        with self._locks.hold((room_id, participant_identity)):
            submission = self._submissions.get(room_id, participant_identity)
            owned = [name for name in submission.all_files if name in to_remove]
            yaml_files = [n for n in submission.yaml_files if n not in to_remove]
            apworld_files = [n for n in submission.apworld_files if n not in to_remove]
            self._submissions.update(
                room_id, participant_identity, yaml_files, apworld_files,
                now=self._lifecycle.now(),
            )
            self._file_area.remove_many(room_id, owned)
        self._archives.invalidate(room_id)

        ignored = to_remove.difference(owned)
        if ignored:
            logger.warning(
                "Ignored %d names not owned by %s in room %s",
                len(ignored), participant_identity, room_id,
            )
        logger.info("Removed %d files from submission in room %s", len(owned), room_id)
        return SubmissionFiles(yaml_files=yaml_files, apworld_files=apworld_files)

    def cancel_submission(self, room_id: str, participant_identity: str) -> None:
        """Delete the caller's submission and all of its files.

        Raises:
            SubmissionNotFoundError: If the caller has no submission
        """
        self._lifecycle.require_active_room(room_id)
        with self._locks.hold((room_id, participant_identity)):
            submission = self._submissions.get(room_id, participant_identity)
            self._submissions.delete(room_id, participant_identity)
            self._file_area.remove_many(room_id, submission.all_files)
        self._archives.invalidate(room_id)
        logger.info("Cancelled submission of %s in room %s", participant_identity, room_id)
