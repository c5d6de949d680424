"""Room module: records, expiry, teardown and the expiry sweeper."""

from .schemas import Room, RoomStats, SweepResult
from .store import RoomStore

__all__ = [
    "Room",
    "RoomStats",
    "RoomStore",
    "SweepResult",
]
