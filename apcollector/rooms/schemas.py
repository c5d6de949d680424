"""Pydantic schemas for rooms.

A room is a time-boxed namespace: it is created with a fixed expiry
(creation time + retention window) that activity never extends.
"""
from datetime import datetime

from pydantic import BaseModel, Field, field_serializer

from ..schemas import ApiModel, utc_isoformat


class Room(BaseModel):
    """A persisted room record."""
    id: str = Field(..., description="Room identifier (UUID)")
    created_at: datetime = Field(..., description="Creation time (UTC)")
    expires_at: datetime = Field(..., description="Expiry time (UTC)")
    creator_identity: str = Field(..., description="Identity of the creator")

    def is_expired(self, now: datetime) -> bool:
        """A room is gone once *now* is strictly past its expiry."""
        return self.expires_at < now


class RoomStats(ApiModel):
    total_submissions: int
    total_yaml_files: int
    total_apworld_files: int
    room_created_at: datetime
    room_expires_at: datetime

    @field_serializer("room_created_at", "room_expires_at")
    def _serialise_timestamps(self, value: datetime) -> str:
        return utc_isoformat(value)


class RoomInfo(ApiModel):
    id: str
    created_at: datetime
    expires_at: datetime

    @field_serializer("created_at", "expires_at")
    def _serialise_timestamps(self, value: datetime) -> str:
        return utc_isoformat(value)


class CreateRoomResponse(ApiModel):
    success: bool = True
    room_id: str
    expires_at: datetime

    @field_serializer("expires_at")
    def _serialise_expires_at(self, value: datetime) -> str:
        return utc_isoformat(value)


class GetRoomResponse(ApiModel):
    success: bool = True
    room: RoomInfo


class RoomStatsResponse(ApiModel):
    success: bool = True
    stats: RoomStats


class SweepResult(BaseModel):
    """Outcome of one expiry sweep."""
    scanned: int = 0
    torn_down: int = 0
    failed: int = 0
