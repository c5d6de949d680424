"""File classification and room-scoped storage.

Files are stored in room-scoped directories ({rooms_dir}/{room_id}/) under
timestamp-prefixed names. When a room is torn down, its whole directory is
deleted.
"""

from .schemas import FileCategory, classify
from .service import FileArea, sanitize_filename

__all__ = ["FileArea", "FileCategory", "classify", "sanitize_filename"]
