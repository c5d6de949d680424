"""File categories and the filename classifier.

Uploaded files fall into exactly two buckets:
- APWORLD: names ending in ``.apworld`` (any case)
- GENERAL: everything else, labelled ``yaml`` on the wire for historical
  reasons; it accepts arbitrary file types

Classification looks at the name only, never at the content or size.
"""
from enum import Enum
from pathlib import PurePosixPath

APWORLD_SUFFIX = ".apworld"


class FileCategory(str, Enum):
    """Bucket a stored file is listed under."""
    GENERAL = "yaml"
    APWORLD = "apworld"


def classify(original_filename: str) -> FileCategory:
    """Determine the category of an uploaded file from its name.

    Examples:
        >>> classify("world.APWORLD")
        <FileCategory.APWORLD: 'apworld'>
        >>> classify("player.yaml")
        <FileCategory.GENERAL: 'yaml'>
        >>> classify("README")
        <FileCategory.GENERAL: 'yaml'>
    """
    suffix = PurePosixPath(original_filename.replace("\\", "/")).suffix
    if suffix.lower() == APWORLD_SUFFIX:
        return FileCategory.APWORLD
    return FileCategory.GENERAL
