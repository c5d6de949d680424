"""Shared base model for HTTP payloads.

The browser client speaks camelCase (``roomId``, ``hasSubmission``); the
Python side keeps snake_case attribute names and serialises by alias.
Timestamps are stored as naive UTC and sent as ISO 8601 ending in ``Z``.
"""
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_isoformat(value: datetime) -> str:
    """Render a UTC datetime the way JavaScript's ``toISOString`` does.

    >>> utc_isoformat(datetime(2026, 1, 2, 12, 0))
    '2026-01-02T12:00:00.000Z'
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds") + "Z"


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatusResponse(ApiModel):
    """Plain success/failure reply with a message."""
    success: bool = True
    message: str = ""
