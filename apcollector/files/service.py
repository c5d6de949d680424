"""Room-scoped file area on local disk.

Files are stored in: {rooms_dir}/{room_id}/{epoch_millis}_{sanitized_name}

The stored name is the reference kept in submission records. Every path
handed out stays inside the room's directory; names that would escape it
are rejected.

Removal is best-effort throughout: the submission records are the source
of truth, so a file that cannot be deleted is logged and left behind for
the next teardown to collect.
"""
import logging
import re
import shutil
import time
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from ..errors import BadRequestError, PayloadTooLargeError, StorageFaultError

logger = logging.getLogger(__name__)

# Default per-file limit: 50MB
MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024

_UNSAFE_CHARS = re.compile(r"[^\w.\-()\[\] +]")

# Leaves room for the "<epoch_millis>_" prefix under the usual 255-byte limit
MAX_NAME_BYTES = 200


def sanitize_filename(original_filename: str) -> str:
    """Reduce a client-supplied name to a single safe path component."""
    name = PurePosixPath(original_filename.replace("\\", "/")).name.strip()
    name = _UNSAFE_CHARS.sub("_", name)
    if name in ("", ".", ".."):
        return "unnamed"
    return _truncate_name(name)


def _truncate_name(name: str, max_bytes: int = MAX_NAME_BYTES) -> str:
    """Shorten the stem to fit *max_bytes* of UTF-8, keeping the extension."""
    if len(name.encode("utf-8")) <= max_bytes:
        return name
    suffix = PurePosixPath(name).suffix
    if len(suffix.encode("utf-8")) > max_bytes // 2:
        suffix = ""
    stem = name[: len(name) - len(suffix)]
    budget = max_bytes - len(suffix.encode("utf-8"))
    stem = stem.encode("utf-8")[:budget].decode("utf-8", "ignore")
    return stem + suffix


def _is_plain_name(name: str) -> bool:
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name


class FileArea:
    """Places and removes uploaded bytes under a per-room directory."""

    def __init__(self, rooms_dir: Path, max_file_size_bytes: int = MAX_FILE_SIZE_BYTES) -> None:
        self._rooms_dir = Path(rooms_dir)
        self._max_file_size_bytes = max_file_size_bytes
        self._rooms_dir.mkdir(parents=True, exist_ok=True)

    @property
    def max_file_size_bytes(self) -> int:
        return self._max_file_size_bytes

    def room_dir(self, room_id: str) -> Path:
        """Directory holding a room's files (not created)."""
        if not _is_plain_name(room_id):
            raise BadRequestError("Invalid room id")
        return self._rooms_dir / room_id

    def path_for(self, room_id: str, stored_name: str) -> Optional[Path]:
        """Path of a stored file, or None when the name is not a plain file name."""
        if not _is_plain_name(stored_name):
            return None
        return self.room_dir(room_id) / stored_name

    def exists(self, room_id: str, stored_name: str) -> bool:
        path = self.path_for(room_id, stored_name)
        return path is not None and path.is_file()

    def store(self, room_id: str, original_filename: str, content: bytes) -> str:
        """Write an uploaded file and return its stored name.

        Args:
            room_id: Room the file belongs to
            original_filename: Name supplied by the client
            content: File content as bytes

        Returns:
            Stored file name, unique within the room

        Raises:
            PayloadTooLargeError: If the file exceeds the size limit (nothing is written)
            StorageFaultError: If the file could not be written
        """
        size_bytes = len(content)
        if size_bytes > self._max_file_size_bytes:
            raise PayloadTooLargeError(
                f"File {original_filename!r} ({size_bytes} bytes) exceeds limit "
                f"of {self._max_file_size_bytes // (1024 * 1024)}MB"
            )

        room_dir = self.room_dir(room_id)
        safe_name = sanitize_filename(original_filename)
        stamp = int(time.time() * 1000)

        try:
            room_dir.mkdir(parents=True, exist_ok=True)
            while True:
                stored_name = f"{stamp}_{safe_name}"
                file_path = room_dir / stored_name
                try:
                    with open(file_path, "xb") as fh:
                        fh.write(content)
                    break
                except FileExistsError:
                    stamp += 1
        except OSError as exc:
            logger.error("Failed to store %s in room %s: %s", safe_name, room_id, exc)
            self.remove(room_id, f"{stamp}_{safe_name}")
            raise StorageFaultError(f"Failed to store file {original_filename!r}") from exc

        logger.info("Saved file: %s (%d bytes)", file_path, size_bytes)
        return stored_name

    def remove(self, room_id: str, stored_name: str) -> bool:
        """Delete one stored file. Missing files are not an error.

        Returns:
            True if a file was deleted
        """
        path = self.path_for(room_id, stored_name)
        if path is None:
            logger.warning("Refusing to remove suspicious name %r in room %s", stored_name, room_id)
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error("Error deleting file %s: %s", path, exc)
            return False
        logger.info("Deleted file: %s", path)
        return True

    def remove_many(self, room_id: str, stored_names: Iterable[str]) -> int:
        """Delete several stored files; returns how many were actually deleted."""
        return sum(1 for name in stored_names if self.remove(room_id, name))

    def remove_room_area(self, room_id: str) -> bool:
        """Delete a room's whole directory. Idempotent.

        Returns:
            True if the directory is gone afterwards
        """
        room_dir = self.room_dir(room_id)
        if not room_dir.exists():
            return True
        try:
            shutil.rmtree(room_dir)
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.error("Error deleting room directory %s: %s", room_dir, exc)
            return False
        logger.info("Deleted directory: %s", room_dir)
        return True
